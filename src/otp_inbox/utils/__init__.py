"""Utility helpers (environment access and logging)."""
