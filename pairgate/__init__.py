"""
pairgate - pairing-code gateway for messaging sessions.
"""

__version__ = "0.1.0"
__logo__ = "🔗"
