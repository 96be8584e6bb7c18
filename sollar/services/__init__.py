"""Sollar backend services.

- Analytics Service: NR-1 psychosocial-risk analytics with k-anonymity
"""
