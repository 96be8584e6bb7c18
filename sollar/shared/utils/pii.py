"""Identifier hashing for logs.

Member identifiers link survey answers to real employees. They must be
hashed before they reach any log line. Anonymous participant ids are never
logged at all, hashed or not.
"""
import hashlib
import logging
import os
from typing import Optional

logger = logging.getLogger(__name__)

MIN_SALT_LENGTH = 32

_PII_SALT: Optional[str] = None


def configure_pii_salt(salt: str) -> None:
    """Configure the salt used by hash_pii.

    Must be called during application startup before any hashing.

    Args:
        salt: Secret salt value (at least 32 characters)

    Raises:
        ValueError: If salt is empty or too short
    """
    global _PII_SALT
    if not salt or len(salt) < MIN_SALT_LENGTH:
        logger.critical(
            "PII_SALT_CONFIGURATION_FAILED",
            extra={"reason": "Salt too short or empty", "min_length": MIN_SALT_LENGTH}
        )
        raise ValueError(f"PII salt must be at least {MIN_SALT_LENGTH} characters")

    _PII_SALT = salt
    logger.info("PII_SALT_CONFIGURED", extra={"salt_length": len(salt)})


def configure_pii_salt_from_env(variable: str = "PII_SALT") -> bool:
    """Configure the salt from an environment variable if it is set.

    Returns:
        True if a salt was configured
    """
    salt = os.getenv(variable)
    if not salt:
        logger.warning("PII_SALT_NOT_IN_ENV", extra={"variable": variable})
        return False
    configure_pii_salt(salt)
    return True


def hash_pii(value: str) -> str:
    """Hash a member identifier for safe logging.

    Raises:
        RuntimeError: If the salt has not been configured
    """
    if _PII_SALT is None:
        logger.critical(
            "PII_HASH_FAILED",
            extra={"reason": "Salt not configured", "action": "call configure_pii_salt()"}
        )
        raise RuntimeError("PII salt not configured. Call configure_pii_salt() first.")

    salted = f"{_PII_SALT}{value}"
    return hashlib.sha256(salted.encode()).hexdigest()


def safe_identifier(value: Optional[str]) -> Optional[str]:
    """Short hashed form of an identifier for log context.

    None passes through. Without a configured salt a fixed marker is
    returned instead of raising.
    """
    if value is None:
        return None
    if _PII_SALT is None:
        return "unhashed"
    return hash_pii(value)[:16]
