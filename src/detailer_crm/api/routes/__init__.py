"""Route group exports."""

from . import customers, health, imports

__all__ = ["customers", "health", "imports"]
