"""Discord cogs for the DSU bot."""

from .dsu_commands import DSUCommandsCog

__all__ = ["DSUCommandsCog"]
