"""CLI module for pairgate."""
