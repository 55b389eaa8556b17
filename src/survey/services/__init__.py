"""Shared services: backend configuration, client management and rate limiting."""
