"""Output abstractions (console)."""

from .console import ConsoleProtocol, MockConsole, NullConsole, RichConsole, Style

__all__ = ["ConsoleProtocol", "MockConsole", "NullConsole", "RichConsole", "Style"]
