"""Utility functions for pairgate."""

from pairgate.utils.helpers import ensure_dir, make_session_id, mask_phone_number

__all__ = ["ensure_dir", "make_session_id", "mask_phone_number"]
