"""Live catalog sources."""
from .postgresql import PostgresCatalog

__all__ = ["PostgresCatalog"]
