"""Compiler error kinds and their formatting."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from casa.common import Ansi, Location


class ErrorKind(Enum):
    BRANCH_MODIFIED_STACK = "BranchModifiedStack"
    FILE_NOT_FOUND = "FileNotFound"
    INVALID_SIGNATURE = "InvalidSignature"
    INVALID_STACK_STATE = "InvalidStackState"
    STACK_UNDERFLOW = "StackUnderflow"
    SYNTAX_ERROR = "SyntaxError"
    UNKNOWN_IDENTIFIER = "UnknownIdentifier"
    VALUE_ERROR = "ValueError"

    def __str__(self) -> str:
        return self.value


def colored_error_tag(kind: ErrorKind) -> str:
    """Return the bracketed, red error tag for ``kind``."""
    return f"[{Ansi.RED}{kind}{Ansi.RESET}]"


def format_error(location: Optional[Location], kind: ErrorKind, message: str) -> str:
    """Format an error report; without a location the message follows the tag."""
    tag = colored_error_tag(kind)
    if location is None:
        return f"{tag} {message}"
    return f"{tag} {location}\n\n{message}"


class CasaError(Exception):
    """A fatal error in a program being compiled."""

    def __init__(
        self, kind: ErrorKind, message: str, location: Optional[Location] = None
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.location = location

    def __str__(self) -> str:
        return format_error(self.location, self.kind, self.message)