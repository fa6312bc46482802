"""Interactive console for Gated Calc."""

from .console import ConsoleApp

__all__ = ["ConsoleApp"]
