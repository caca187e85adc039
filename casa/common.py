"""Core data types shared by the lexer, type checker and code generator."""

from __future__ import annotations

from bisect import bisect_left
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional, Union


class Ansi(str, Enum):
    """Terminal colour escape sequences."""

    RESET = "\x1b[0m"
    RED = "\x1b[91m"
    YELLOW = "\x1b[33m"
    BLUE = "\x1b[94m"

    def __str__(self) -> str:
        return self.value


class Delimiter(Enum):
    CLOSE_PAREN = ")"
    COLON = ":"
    OPEN_PAREN = "("


DELIMITERS: dict[str, Delimiter] = {d.value: d for d in Delimiter}


class Keyword(Enum):
    BIND = "bind"
    BREAK = "break"
    CAST = "cast"
    CONST = "const"
    CONTINUE = "continue"
    DO = "do"
    DONE = "done"
    ELIF = "elif"
    ELSE = "else"
    ENDIF = "endif"
    END = "end"
    ENUM = "enum"
    FI = "fi"
    FUN = "fun"
    IF = "if"
    INLINE = "inline"
    PEEK = "peek"
    RETURN = "return"
    TAKE = "take"
    THEN = "then"
    TYPEOF = "typeof"
    WHILE = "while"

    def __str__(self) -> str:
        return self.value


class Intrinsic(Enum):
    ADD = "add"
    AND = "and"
    DIV = "div"
    DROP = "drop"
    DUP = "dup"
    EQ = "eq"
    GE = "ge"
    GT = "gt"
    LE = "le"
    LOAD_BYTE = "load_byte"
    LOAD_WORD = "load_word"
    LOAD_DWORD = "load_dword"
    LOAD_QWORD = "load_qword"
    LT = "lt"
    SUB = "sub"
    MOD = "mod"
    MUL = "mul"
    NE = "ne"
    OR = "or"
    OVER = "over"
    ROT = "rot"
    SHL = "shl"
    SHR = "shr"
    STORE_BYTE = "store_byte"
    STORE_WORD = "store_word"
    STORE_DWORD = "store_dword"
    STORE_QWORD = "store_qword"
    SWAP = "swap"
    SYSCALL0 = "syscall0"
    SYSCALL1 = "syscall1"
    SYSCALL2 = "syscall2"
    SYSCALL3 = "syscall3"
    SYSCALL4 = "syscall4"
    SYSCALL5 = "syscall5"
    SYSCALL6 = "syscall6"

    def __str__(self) -> str:
        return self.value


class TokenKind(Enum):
    DELIMITER = "Delimiter"
    END_OF_FILE = "EndOfFile"
    IDENTIFIER = "Identifier"
    INTRINSIC = "Intrinsic"
    KEYWORD = "Keyword"
    LITERAL = "Literal"


@dataclass(frozen=True)
class Location:
    """A position in a source file; rows and columns start at 1."""

    file: Path
    row: int
    col: int

    def __str__(self) -> str:
        return (
            f"{self.file}:{Ansi.YELLOW}{self.row}{Ansi.RESET}"
            f":{Ansi.YELLOW}{self.col}{Ansi.RESET}"
        )


TokenData = Union[Delimiter, Intrinsic, Keyword, bool, int, str, None]


@dataclass(frozen=True)
class Token:
    """A lexed word.

    ``data`` carries what the kind needs: the delimiter, intrinsic or keyword,
    or the literal's value (string literals without their quotes).
    """

    value: str
    kind: TokenKind
    location: Location
    data: TokenData = None


class OpType(Enum):
    FUNCTION_CALL = "FunctionCall"
    FUNCTION_EPILOGUE = "FunctionEpilogue"
    FUNCTION_PROLOGUE = "FunctionPrologue"
    INLINE_FUNCTION_CALL = "InlineFunctionCall"
    INTRINSIC = "Intrinsic"
    PUSH_BOOL = "PushBool"
    PUSH_INT = "PushInt"
    PUSH_STR = "PushStr"
    RETURN = "Return"

    IF = "If"
    THEN = "Then"
    FI = "Fi"

    WHILE = "While"
    DO = "Do"
    DONE = "Done"
    BREAK = "Break"
    CONTINUE = "Continue"

    TAKE = "Take"
    PEEK = "Peek"
    BIND = "Bind"
    TAKE_BIND = "TakeBind"
    PEEK_BIND = "PeekBind"
    PUSH_BIND = "PushBind"

    UNKNOWN = "Unknown"


@dataclass
class Op:
    """One operation of a function body; ``intrinsic`` is set for intrinsic ops."""

    id: int
    type: OpType
    token: Token
    intrinsic: Optional[Intrinsic] = None


@dataclass(frozen=True)
class Parameter:
    ty: str
    name: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.name}:{self.ty}" if self.name is not None else self.ty


@dataclass
class Signature:
    """Function signature such as ``num1:int num2:int -> int bool``."""

    params: list[Parameter] = field(default_factory=list)
    return_types: list[str] = field(default_factory=list)

    def param_types(self) -> list[str]:
        return [param.ty for param in self.params]

    def __str__(self) -> str:
        parts = []
        if self.params:
            parts.append(" ".join(str(p) for p in self.params))
        if self.return_types:
            parts.append("-> " + " ".join(self.return_types))
        return " ".join(parts)


@dataclass
class Function:
    """A parsed function; ``variables`` holds unique names in binding order."""

    name: str
    signature: Signature
    location: Location
    is_inline: bool
    ops: list[Op] = field(default_factory=list)
    variables: list[str] = field(default_factory=list)


def global_identifiers(functions: Iterable[Function]) -> dict[str, Function]:
    """Map every function name to its function; later duplicates win."""
    return {function.name: function for function in functions}


def _op_index(op: Op, function: Function) -> Optional[int]:
    ops = function.ops
    index = bisect_left(ops, op.id, key=lambda other: other.id)
    if index < len(ops) and ops[index].id == op.id:
        return index
    return None


def _require_type(op: Op, *allowed: OpType) -> None:
    if op.type not in allowed:
        names = ", ".join(t.value for t in allowed)
        raise ValueError(f"Expected an op of type {names}, got {op.type.value}")


def related_fi_id(op: Op, function: Function) -> Optional[int]:
    """Return the id of the ``fi`` closing the block of a ``then`` op."""
    _require_type(op, OpType.THEN)
    index = _op_index(op, function)
    if index is None:
        return None
    nested = 0
    for other in function.ops[index + 1:]:
        if other.type is OpType.FI:
            if nested == 0:
                return other.id
            nested -= 1
        elif other.type is OpType.IF:
            nested += 1
    return None


def related_done_id(op: Op, function: Function) -> Optional[int]:
    """Return the id of the ``done`` ending the loop of a ``break`` or ``do`` op."""
    _require_type(op, OpType.BREAK, OpType.DO)
    index = _op_index(op, function)
    if index is None:
        return None
    nested = 0
    for other in function.ops[index + 1:]:
        if other.type is OpType.DONE:
            if nested == 0:
                return other.id
            nested -= 1
        elif other.type is OpType.WHILE:
            nested += 1
    return None


def related_while_id(op: Op, function: Function) -> Optional[int]:
    """Return the id of the ``while`` starting the loop of a ``continue`` or ``done`` op."""
    _require_type(op, OpType.CONTINUE, OpType.DONE)
    index = _op_index(op, function)
    if index is None:
        return None
    nested = 0
    for other in reversed(function.ops[:index]):
        if other.type is OpType.WHILE:
            if nested == 0:
                return other.id
            nested -= 1
        elif other.type is OpType.DONE:
            nested += 1
    return None