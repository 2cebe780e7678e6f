from __future__ import annotations


class UserFacingError(Exception):
    """Recoverable command failure that is turned into a chat reply."""

    prefix = "Error: "

    def reply_text(self, syntax: str) -> str:
        return f"{self.prefix}{self}. Syntax: {syntax}"


class ParameterError(UserFacingError):
    prefix = "Parameter error: "


class CommandSyntaxError(UserFacingError):
    prefix = "Syntax error: "


class CommandError(UserFacingError):
    prefix = "Command error: "


class OpenQuoteError(ValueError):
    pass


class ConfigurationError(RuntimeError):
    pass


class ResolutionFailure(LookupError):
    def __init__(self, kind: str, name: str, line: int) -> None:
        super().__init__(f"{kind} '{name}' could not be found (line {line})")
        self.kind = kind
        self.name = name
        self.line = line


class RecordIndexError(IndexError):
    pass
