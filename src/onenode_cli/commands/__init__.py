"""CLI command groups registered on the root `onenode` group."""

from .cluster import plan, status, up
from .config import config

__all__ = ["up", "plan", "status", "config"]
