"""Turns program text into functions made of ops."""

from __future__ import annotations

import re
from enum import Enum
from itertools import count
from pathlib import Path
from typing import Iterator, Optional, Union

from casa.common import (
    DELIMITERS,
    Ansi,
    Function,
    Intrinsic,
    Keyword,
    Location,
    Op,
    OpType,
    Parameter,
    Signature,
    Token,
    TokenKind,
    global_identifiers,
)
from casa.errors import CasaError, ErrorKind

_INTEGER = re.compile(r"[+-]?[0-9]+")
_I32_MIN = -(2**31)
_I32_MAX = 2**31 - 1
_FUNCTION_ERROR = "Error occurred while parsing a function"

_KEYWORD_OPS = {
    Keyword.BIND: OpType.BIND,
    Keyword.BREAK: OpType.BREAK,
    Keyword.CONTINUE: OpType.CONTINUE,
    Keyword.DO: OpType.DO,
    Keyword.DONE: OpType.DONE,
    Keyword.END: OpType.FUNCTION_EPILOGUE,
    Keyword.FUN: OpType.FUNCTION_PROLOGUE,
    Keyword.FI: OpType.FI,
    Keyword.IF: OpType.IF,
    Keyword.PEEK: OpType.PEEK,
    Keyword.RETURN: OpType.RETURN,
    Keyword.TAKE: OpType.TAKE,
    Keyword.THEN: OpType.THEN,
    Keyword.WHILE: OpType.WHILE,
}

_INTRINSICS = {i.value: i for i in Intrinsic}
_KEYWORDS = {k.value: k for k in Keyword}


class _Binding(Enum):
    TAKE = "take"
    PEEK = "peek"


def _syntax_error(location: Optional[Location], message: str) -> CasaError:
    return CasaError(ErrorKind.SYNTAX_ERROR, message, location)


class _Parser:
    """Cursor over program text."""

    def __init__(self, code: str, file: Path) -> None:
        self.code = code
        self.file = file
        self.cursor = 0
        self._ids: Iterator[int] = count()

    def next_id(self) -> int:
        return next(self._ids)

    @property
    def rest(self) -> str:
        return self.code[self.cursor:]

    @property
    def finished(self) -> bool:
        return self.cursor >= len(self.code)

    def location(self) -> Location:
        before = self.code[: self.cursor]
        row = before.count("\n") + 1
        row_start = before.rfind("\n") + 1
        return Location(self.file, row, self.cursor - row_start + 1)

    def skip_whitespace(self) -> None:
        while self.cursor < len(self.code) and self.code[self.cursor].isspace():
            self.cursor += 1

    def peek_word(self) -> str:
        """The next word; stops at whitespace or a delimiter, taking at least one character."""
        rest = self.rest
        for i, char in enumerate(rest):
            if char.isspace() or char in DELIMITERS:
                return rest[: max(i, 1)]
        return rest

    def parse_word(self) -> str:
        word = self.peek_word()
        self.cursor += len(word)
        return word

    def expect_word(self, expected: str) -> bool:
        if self.peek_word() == expected:
            self.cursor += len(expected)
            return True
        return False

    def startswith(self, expected: str) -> bool:
        return self.code.startswith(expected, self.cursor)

    def skip_if_startswith(self, expected: str) -> bool:
        if self.startswith(expected):
            self.cursor += len(expected)
            return True
        return False


def parse_token(text: str, location: Location) -> Token:
    """Classify a single word of program text."""
    if text == "":
        return Token("", TokenKind.END_OF_FILE, location)
    if len(text) >= 2 and text.startswith('"') and text.endswith('"'):
        return Token(text, TokenKind.LITERAL, location, text[1:-1])
    if text in ("true", "false"):
        return Token(text, TokenKind.LITERAL, location, text == "true")
    if _INTEGER.fullmatch(text):
        number = int(text)
        if _I32_MIN <= number <= _I32_MAX:
            return Token(text, TokenKind.LITERAL, location, number)
    if text in _INTRINSICS:
        return Token(text, TokenKind.INTRINSIC, location, _INTRINSICS[text])
    if text in _KEYWORDS:
        return Token(text, TokenKind.KEYWORD, location, _KEYWORDS[text])
    return Token(text, TokenKind.IDENTIFIER, location)


def _parse_string_literal(parser: _Parser) -> Optional[str]:
    rest = parser.rest
    if not rest.startswith('"'):
        return None
    for index, char in enumerate(rest[1:], start=1):
        if char == "\n":
            return None
        if char == '"':
            parser.cursor += index + 1
            return rest[: index + 1]
    return None


def _parse_token_value(parser: _Parser) -> str:
    if parser.finished:
        return ""
    if parser.rest.startswith('"'):
        literal = _parse_string_literal(parser)
        if literal is not None:
            return literal
        location = parser.location()
        value = parser.parse_word()
        raise _syntax_error(location, f"Invalid string literal token: '{value}'")
    return parser.parse_word()


def _parse_next_token(parser: _Parser) -> Token:
    location = parser.location()
    return parse_token(_parse_token_value(parser), location)


def _eof_in_signature(parser: _Parser, what: str, function_name: str) -> CasaError:
    return _syntax_error(
        parser.location(),
        f"End of file while parsing {what} for '{function_name}' function.\n\n"
        f"{Ansi.BLUE}Hint{Ansi.RESET}: Did you forget to start the function body "
        "with '::' token?",
    )


def _parse_params(parser: _Parser, function_name: str) -> list[Parameter]:
    params = []
    while True:
        parser.skip_whitespace()
        if parser.startswith("->") or parser.startswith("::"):
            return params
        if parser.finished:
            raise _eof_in_signature(parser, "parameters", function_name)
        name_or_type = parser.parse_word()
        if parser.expect_word(":"):
            ty = parser.parse_word()
            if not ty:
                raise _eof_in_signature(parser, "parameters", function_name)
            params.append(Parameter(ty, name_or_type))
        else:
            params.append(Parameter(name_or_type))


def _parse_return_types(parser: _Parser, function_name: str) -> list[str]:
    return_types = []
    parser.skip_whitespace()
    while not parser.startswith("::"):
        if parser.finished:
            raise _eof_in_signature(parser, "return types", function_name)
        return_types.append(parser.parse_word())
        parser.skip_whitespace()
    return return_types


def _parse_signature(parser: _Parser, function_name: str) -> Signature:
    params = _parse_params(parser, function_name)
    return_types = (
        _parse_return_types(parser, function_name) if parser.expect_word("->") else []
    )
    return Signature(params, return_types)


def _validate_signature(name: str, signature: Signature, location: Location) -> None:
    if name != "main":
        return
    if not signature.params and signature.return_types in ([], ["int"]):
        return
    raise _syntax_error(
        location,
        "Invalid signature for 'main' function:\n\n"
        f"    `fun main {signature}`\n\n"
        "Expected one of the following:\n\n"
        "    `fun main`\n"
        "    `fun main -> int`",
    )


def _keyword_op(parser: _Parser, keyword: Keyword, token: Token) -> Optional[Op]:
    op_id = parser.next_id()
    if keyword is Keyword.INLINE:
        return None
    op_type = _KEYWORD_OPS.get(keyword)
    if op_type is None:
        raise _syntax_error(token.location, f"Unsupported keyword: '{keyword}'")
    return Op(op_id, op_type, token)


def _literal_op(parser: _Parser, token: Token) -> Op:
    data = token.data
    if isinstance(data, bool):
        op_type = OpType.PUSH_BOOL
    elif isinstance(data, int):
        op_type = OpType.PUSH_INT
    else:
        op_type = OpType.PUSH_STR
    return Op(parser.next_id(), op_type, token)


def _identifier_op(parser: _Parser, token: Token, binding: Optional[_Binding]) -> Op:
    if binding is _Binding.PEEK:
        op_type = OpType.PEEK_BIND
    elif binding is _Binding.TAKE:
        op_type = OpType.TAKE_BIND
    else:
        op_type = OpType.UNKNOWN
    return Op(parser.next_id(), op_type, token)


def _parse_function(parser: _Parser) -> Function:
    ops: list[Op] = []

    is_inline = parser.expect_word("inline")
    parser.skip_whitespace()

    fun_token = _parse_next_token(parser)
    if fun_token.value != "fun":
        raise _syntax_error(
            fun_token.location,
            f"{_FUNCTION_ERROR}: Expected 'fun' but got '{fun_token.value}'",
        )
    parser.skip_whitespace()

    if not is_inline:
        ops.append(Op(parser.next_id(), OpType.FUNCTION_PROLOGUE, fun_token))

    name = parser.parse_word()
    parser.skip_whitespace()

    signature_location = parser.location()
    signature = _parse_signature(parser, name)
    _validate_signature(name, signature, signature_location)
    parser.skip_whitespace()

    if not parser.skip_if_startswith("::"):
        raise _syntax_error(
            parser.location(),
            f"{_FUNCTION_ERROR}: Expected '::' but got '{parser.peek_word()}'",
        )

    variables: list[str] = []
    binding: Optional[_Binding] = None
    while True:
        parser.skip_whitespace()
        token = _parse_next_token(parser)
        kind = token.kind
        if kind is TokenKind.DELIMITER:
            continue
        if kind is TokenKind.END_OF_FILE:
            raise _syntax_error(
                token.location,
                f"{_FUNCTION_ERROR}: The '{name}' function is missing the 'end' token",
            )
        if kind is TokenKind.IDENTIFIER:
            ops.append(_identifier_op(parser, token, binding))
            if binding is not None and token.value not in variables:
                variables.append(token.value)
        elif kind is TokenKind.INTRINSIC:
            ops.append(Op(parser.next_id(), OpType.INTRINSIC, token, token.data))
        elif kind is TokenKind.LITERAL:
            ops.append(_literal_op(parser, token))
        elif token.data is Keyword.END:
            if not is_inline:
                ops.append(Op(parser.next_id(), OpType.FUNCTION_EPILOGUE, token))
            break
        else:
            keyword = token.data
            op = _keyword_op(parser, keyword, token)
            if op is not None:
                ops.append(op)
            if keyword is Keyword.BIND:
                binding = None
            elif keyword is Keyword.PEEK:
                binding = _Binding.PEEK
            elif keyword is Keyword.TAKE:
                binding = _Binding.TAKE

    return Function(name, signature, fun_token.location, is_inline, ops, variables)


def _resolve_identifiers(functions: list[Function]) -> None:
    identifiers = global_identifiers(functions)
    for function in functions:
        for op in function.ops:
            if op.type is not OpType.UNKNOWN:
                continue
            called = identifiers.get(op.token.value)
            if called is not None:
                op.type = (
                    OpType.INLINE_FUNCTION_CALL if called.is_inline else OpType.FUNCTION_CALL
                )
            if op.token.value in function.variables:
                op.type = OpType.PUSH_BIND


def parse_code(code: str, file: Union[str, Path] = "<input>") -> list[Function]:
    """Parse program text into functions with resolved identifiers."""
    parser = _Parser(code, Path(file))
    functions = []
    while True:
        parser.skip_whitespace()
        keyword = parser.peek_word()
        if keyword == "":
            break
        if keyword not in ("fun", "inline"):
            raise _syntax_error(
                parser.location(), f"Unknown segment keyword: '{keyword}'"
            )
        functions.append(_parse_function(parser))

    if not parser.finished:
        raise _syntax_error(
            parser.location(),
            f"The lexer could not parse the whole file '{parser.file}'\n\n"
            f"Unparsed code:\n\n{parser.rest}",
        )

    _resolve_identifiers(functions)
    return functions


def parse_code_file(file: Union[str, Path]) -> list[Function]:
    """Read and parse a program file."""
    path = Path(file)
    try:
        code = path.read_text(encoding="utf-8")
    except OSError as error:
        raise CasaError(
            ErrorKind.FILE_NOT_FOUND, f"Cannot read file '{path}': {error}"
        ) from error
    return parse_code(code, path)