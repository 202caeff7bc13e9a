"""Tahmine dayalı envanter riski ve uyarı motoru."""

__version__ = "0.1.0"
