from pathlib import Path

import pytest

from casa.common import (
    DELIMITERS,
    Ansi,
    Delimiter,
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
    related_done_id,
    related_fi_id,
    related_while_id,
)

LOC = Location(Path("prog.casa"), 1, 1)


def make_function(types, name="f", inline=False):
    ops = [
        Op(i * 2, ty, Token(ty.value.lower(), TokenKind.KEYWORD, LOC))
        for i, ty in enumerate(types)
    ]
    return Function(name, Signature(), LOC, inline, ops)


def test_ansi_str_is_escape_sequence():
    assert str(Ansi.RED) == "\x1b[91m"
    assert f"{Ansi.RESET}" == "\x1b[0m"
    text = str(Location(Path("x.casa"), 2, 5))
    assert text == "x.casa:\x1b[33m2\x1b[0m:\x1b[33m5\x1b[0m"


def test_delimiters_lookup():
    assert DELIMITERS[":"] is Delimiter.COLON
    assert DELIMITERS["("] is Delimiter.OPEN_PAREN
    assert DELIMITERS[")"] is Delimiter.CLOSE_PAREN
    assert "x" not in DELIMITERS
    for delimiter in DELIMITERS.values():
        assert Delimiter(delimiter.value) is delimiter


def test_keyword_parse_lowercase():
    assert Keyword("fun") is Keyword.FUN
    assert Keyword("endif") is Keyword.ENDIF
    with pytest.raises(ValueError):
        Keyword("Fun")


def test_intrinsic_parse_snake_case():
    assert Intrinsic("load_dword") is Intrinsic.LOAD_DWORD
    assert Intrinsic("syscall6") is Intrinsic.SYSCALL6
    with pytest.raises(ValueError):
        Intrinsic("LoadByte")


@pytest.mark.parametrize("member", list(Intrinsic))
def test_intrinsic_round_trip(member):
    assert Intrinsic(str(member)) is member


@pytest.mark.parametrize("member", list(Keyword))
def test_keyword_round_trip(member):
    assert Keyword(str(member)) is member


def test_location_str():
    loc = Location(Path("a.casa"), 3, 7)
    text = str(loc)
    assert text.startswith("a.casa:")
    assert text == f"a.casa:{Ansi.YELLOW}3{Ansi.RESET}:{Ansi.YELLOW}7{Ansi.RESET}"


def test_parameter_str():
    assert str(Parameter("int", "num1")) == "num1:int"
    assert str(Parameter("str")) == "str"


def test_signature_str_examples():
    assert str(Signature([Parameter("str")])) == "str"
    assert str(Signature([Parameter("str"), Parameter("int")], ["bool"])) == "str int -> bool"
    sig = Signature(
        [Parameter("int", "num1"), Parameter("int", "num2")], ["int", "bool"]
    )
    assert str(sig) == "num1:int num2:int -> int bool"
    assert str(Signature([], ["int"])) == "-> int"
    assert str(Signature()) == ""


def test_signature_param_types():
    sig = Signature([Parameter("int", "a"), Parameter("ptr")], ["bool"])
    assert sig.param_types() == ["int", "ptr"]


def test_global_identifiers_maps_names():
    a = make_function([], name="a")
    b = make_function([], name="b")
    table = global_identifiers([a, b])
    assert table == {"a": a, "b": b}


def test_related_fi_skips_nested_if():
    f = make_function(
        [OpType.IF, OpType.THEN, OpType.IF, OpType.THEN, OpType.FI, OpType.FI]
    )
    outer_then, inner_then = f.ops[1], f.ops[3]
    assert related_fi_id(outer_then, f) == f.ops[5].id
    assert related_fi_id(inner_then, f) == f.ops[4].id


def test_related_fi_missing():
    f = make_function([OpType.IF, OpType.THEN])
    assert related_fi_id(f.ops[1], f) is None


def test_related_done_and_while_nested():
    f = make_function(
        [
            OpType.WHILE,
            OpType.DO,
            OpType.WHILE,
            OpType.DO,
            OpType.BREAK,
            OpType.DONE,
            OpType.CONTINUE,
            OpType.DONE,
        ]
    )
    ops = f.ops
    assert related_done_id(ops[1], f) == ops[7].id
    assert related_done_id(ops[3], f) == ops[5].id
    assert related_done_id(ops[4], f) == ops[5].id
    assert related_while_id(ops[5], f) == ops[2].id
    assert related_while_id(ops[6], f) == ops[0].id
    assert related_while_id(ops[7], f) == ops[0].id


def test_related_op_not_in_function():
    f = make_function([OpType.WHILE, OpType.DO, OpType.DONE])
    stray = Op(999, OpType.DO, f.ops[1].token)
    assert related_done_id(stray, f) is None


def test_related_wrong_op_type_rejected():
    f = make_function([OpType.IF, OpType.THEN, OpType.FI])
    with pytest.raises(ValueError):
        related_fi_id(f.ops[0], f)
    with pytest.raises(ValueError):
        related_while_id(f.ops[1], f)
    with pytest.raises(ValueError):
        related_done_id(f.ops[2], f)