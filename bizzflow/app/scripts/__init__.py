"""Maintenance commands runnable with ``python -m``."""
