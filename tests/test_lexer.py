from pathlib import Path

import pytest

from casa.common import Intrinsic, Keyword, Location, OpType, Parameter, TokenKind
from casa.errors import CasaError, ErrorKind
from casa.lexer import parse_code, parse_code_file, parse_token

LOC = Location(Path("t.casa"), 1, 1)


def op_types(function):
    return [op.type for op in function.ops]


@pytest.mark.parametrize(
    "text, kind, data",
    [
        ("", TokenKind.END_OF_FILE, None),
        ("true", TokenKind.LITERAL, True),
        ("false", TokenKind.LITERAL, False),
        ("42", TokenKind.LITERAL, 42),
        ("-7", TokenKind.LITERAL, -7),
        ('"hi there"', TokenKind.LITERAL, "hi there"),
        ("add", TokenKind.INTRINSIC, Intrinsic.ADD),
        ("load_byte", TokenKind.INTRINSIC, Intrinsic.LOAD_BYTE),
        ("syscall3", TokenKind.INTRINSIC, Intrinsic.SYSCALL3),
        ("while", TokenKind.KEYWORD, Keyword.WHILE),
        ("foo", TokenKind.IDENTIFIER, None),
        ("99999999999", TokenKind.IDENTIFIER, None),
        ("True", TokenKind.IDENTIFIER, None),
    ],
)
def test_parse_token_classification(text, kind, data):
    parsed = parse_token(text, LOC)
    assert parsed.kind is kind
    assert parsed.data == data
    assert parsed.value == text
    assert parsed.location == LOC


def test_bool_literal_is_not_an_int():
    literal_text = "true"
    parsed = parse_token(literal_text, LOC)
    assert parsed.data is True


def test_simple_main_ops():
    [main] = parse_code("fun main :: 1 2 add drop end")
    assert main.name == "main"
    assert not main.is_inline
    assert op_types(main) == [
        OpType.FUNCTION_PROLOGUE,
        OpType.PUSH_INT,
        OpType.PUSH_INT,
        OpType.INTRINSIC,
        OpType.INTRINSIC,
        OpType.FUNCTION_EPILOGUE,
    ]
    assert [op.intrinsic for op in main.ops[3:5]] == [Intrinsic.ADD, Intrinsic.DROP]


def test_op_ids_strictly_increase():
    functions = parse_code("fun f :: 1 drop end fun main :: f true drop end")
    ids = [op.id for function in functions for op in function.ops]
    assert ids == sorted(ids)
    assert len(set(ids)) == len(ids)


def test_function_call_resolution():
    helper, main = parse_code("fun helper :: end fun main :: helper end")
    assert main.ops[1].type is OpType.FUNCTION_CALL
    assert main.ops[1].token.value == "helper"
    assert op_types(helper) == [OpType.FUNCTION_PROLOGUE, OpType.FUNCTION_EPILOGUE]


def test_inline_function():
    inner, main = parse_code("inline fun inner :: 1 end fun main :: inner drop end")
    assert inner.is_inline
    assert op_types(inner) == [OpType.PUSH_INT]
    assert main.ops[1].type is OpType.INLINE_FUNCTION_CALL


def test_unresolved_identifier_stays_unknown():
    [main] = parse_code("fun main :: nothing end")
    assert main.ops[1].type is OpType.UNKNOWN


def test_take_binding_and_push():
    [main] = parse_code("fun main :: 1 take x bind x drop end")
    assert main.variables == ["x"]
    assert op_types(main)[1:-1] == [
        OpType.PUSH_INT,
        OpType.TAKE,
        OpType.TAKE_BIND,
        OpType.BIND,
        OpType.PUSH_BIND,
        OpType.INTRINSIC,
    ]


def test_peek_binding_keeps_unique_variables():
    [main] = parse_code("fun main :: 1 2 peek a b bind peek a bind drop drop end")
    assert main.variables == ["a", "b"]
    assert [op.type for op in main.ops if op.token.value == "a"] == [
        OpType.PEEK_BIND,
        OpType.PEEK_BIND,
    ]


def test_signature_parsing():
    [f] = parse_code("fun f a:int str -> bool int :: drop drop true 1 end")
    assert f.signature.params == [Parameter("int", "a"), Parameter("str")]
    assert f.signature.return_types == ["bool", "int"]
    assert str(f.signature) == "a:int str -> bool int"


def test_main_returning_int_is_accepted():
    [main] = parse_code("fun main -> int :: 0 end")
    assert main.signature.return_types == ["int"]


def test_string_literal_token():
    [main] = parse_code('fun main :: "hello world" drop end')
    op = main.ops[1]
    assert op.type is OpType.PUSH_STR
    assert op.token.value == '"hello world"'
    assert op.token.data == "hello world"


def test_control_flow_ops():
    [main] = parse_code("fun main :: while true do break done if true then fi end")
    assert op_types(main)[1:-1] == [
        OpType.WHILE,
        OpType.PUSH_BOOL,
        OpType.DO,
        OpType.BREAK,
        OpType.DONE,
        OpType.IF,
        OpType.PUSH_BOOL,
        OpType.THEN,
        OpType.FI,
    ]


def test_token_location():
    [main] = parse_code("fun main ::\n  1 drop end", "prog.casa")
    location = main.ops[1].token.location
    assert (location.row, location.col) == (2, 3)
    assert location.file == Path("prog.casa")
    assert main.location.row == 1


def test_missing_end():
    with pytest.raises(CasaError) as info:
        parse_code("fun main :: 1 drop")
    assert info.value.kind is ErrorKind.SYNTAX_ERROR
    assert "The 'main' function is missing the 'end' token" in info.value.message


def test_unknown_segment_keyword():
    with pytest.raises(CasaError) as info:
        parse_code("foo bar")
    assert info.value.message == "Unknown segment keyword: 'foo'"


def test_invalid_main_signature():
    with pytest.raises(CasaError) as info:
        parse_code("fun main -> bool :: true end")
    assert "Invalid signature for 'main' function" in info.value.message
    assert "`fun main -> bool`" in info.value.message


def test_missing_body_start_in_params():
    with pytest.raises(CasaError) as info:
        parse_code("fun f int")
    assert "End of file while parsing parameters for 'f' function." in info.value.message


def test_missing_body_start_in_return_types():
    with pytest.raises(CasaError) as info:
        parse_code("fun f -> int")
    assert "End of file while parsing return types for 'f' function." in info.value.message


def test_unterminated_string_literal():
    with pytest.raises(CasaError) as info:
        parse_code('fun main :: "abc\n" end')
    assert info.value.message == "Invalid string literal token: '\"abc'"


def test_unsupported_keyword():
    with pytest.raises(CasaError) as info:
        parse_code("fun main :: else end")
    assert info.value.kind is ErrorKind.SYNTAX_ERROR


def test_parse_code_file_round_trip(tmp_path):
    path = tmp_path / "prog.casa"
    path.write_text("fun main :: 1 drop end\n", encoding="utf-8")
    [main] = parse_code_file(path)
    assert main.location.file == path
    assert op_types(main)[1] is OpType.PUSH_INT


def test_parse_code_file_missing(tmp_path):
    with pytest.raises(CasaError) as info:
        parse_code_file(tmp_path / "missing.casa")
    assert info.value.kind is ErrorKind.FILE_NOT_FOUND
    assert "Cannot read file" in info.value.message