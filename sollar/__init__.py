"""Sollar: psychosocial-risk assessment platform (NR-1)."""

__version__ = "0.1.0"
