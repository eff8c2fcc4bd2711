"""Constant value sets loaded from ``values.yml``."""
