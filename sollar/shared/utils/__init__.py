"""Shared utilities for the Sollar platform."""
from .pii import hash_pii, safe_identifier, configure_pii_salt, configure_pii_salt_from_env

__all__ = ["hash_pii", "safe_identifier", "configure_pii_salt", "configure_pii_salt_from_env"]
