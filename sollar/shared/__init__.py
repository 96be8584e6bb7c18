"""Shared models, database access and utilities."""
