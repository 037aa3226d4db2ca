"""StandardSentinel: structural coding-standards enforcement for C# projects."""

__version__ = "0.1.0"
