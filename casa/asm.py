"""Generation of x86-64 GNU assembler code from parsed functions."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Iterable, Mapping

from casa.common import (
    Function,
    Intrinsic,
    Op,
    OpType,
    related_done_id,
    related_fi_id,
    related_while_id,
)
from casa.errors import CasaError, ErrorKind

_BSS_SECTION = """.section .bss
    args_ptr: .skip 8
    arena_allocator: .skip 8*3
    return_stack: .skip 1337*64"""

_TEXT_HEADER = """.section .text
.globl _start"""

_DATA_HEADER = ".section .data"

_SYSCALL_REGISTERS = ("rdi", "rsi", "rdx", "rcx", "r8", "r9")


def syscall_assembly(argc: int) -> str:
    """Assembly for a syscall taking ``argc`` arguments from the stack."""
    if not 0 <= argc <= len(_SYSCALL_REGISTERS):
        raise ValueError(f"Syscalls take 0 to 6 arguments, got {argc}")
    lines = ["popq %rax"]
    lines.extend(f"popq %{register}" for register in _SYSCALL_REGISTERS[:argc])
    lines.append("syscall")
    lines.append("pushq %rax")
    return "\n".join(lines)


_INTRINSIC_ASM: dict[Intrinsic, str] = {
    Intrinsic.ADD: "popq %rax\naddq %rax, (%rsp)",
    Intrinsic.AND: "popq %rax\nandq %rax, (%rsp)",
    Intrinsic.DIV: "xor %edx, %edx\npopq %rbx\npopq %rax\ndivq %rbx\npushq %rax",
    Intrinsic.DROP: "popq %rax",
    Intrinsic.DUP: "pushq (%rsp)",
    Intrinsic.SUB: "popq %rax\nsubq %rax, (%rsp)",
    Intrinsic.MOD: "xor %edx, %edx\npopq %rbx\npopq %rax\ndivq %rbx\npushq %rdx",
    Intrinsic.MUL: "popq %rax\npopq %rbx\nmulq %rbx\npushq %rax",
    Intrinsic.OR: "popq %rax\norq %rax, (%rsp)",
    Intrinsic.OVER: "pushq 8(%rsp)",
    Intrinsic.ROT: (
        "popq %rax\npopq %rbx\npopq %rcx\npushq %rbx\npushq %rax\npushq %rcx"
    ),
    Intrinsic.SHL: "popq %rcx\nshlq %cl, (%rsp)",
    Intrinsic.SHR: "popq %rcx\nshrq %cl, (%rsp)",
    Intrinsic.SWAP: "popq %rax\npushq (%rsp)\nmovq %rax, 8(%rsp)",
    Intrinsic.SYSCALL0: syscall_assembly(0),
    Intrinsic.SYSCALL1: syscall_assembly(1),
    Intrinsic.SYSCALL2: syscall_assembly(2),
    Intrinsic.SYSCALL3: syscall_assembly(3),
    Intrinsic.SYSCALL4: syscall_assembly(4),
    Intrinsic.SYSCALL5: syscall_assembly(5),
    Intrinsic.SYSCALL6: syscall_assembly(6),
}


def _intrinsic_name(intrinsic: Intrinsic) -> str:
    return "".join(part.capitalize() for part in intrinsic.value.split("_"))


def _op_type_name(op: Op) -> str:
    if op.type is OpType.INTRINSIC and op.intrinsic is not None:
        return f"Intrinsic({_intrinsic_name(op.intrinsic)})"
    return op.type.value


def _string_variable_name(op: Op, function: Function) -> str:
    return f"{function.name}_s{op.id}"


def _function_label(function: Function) -> str:
    return "_start" if function.name == "main" else function.name


def _comment(op: Op, function: Function) -> str:
    location = op.token.location
    file_name = Path(location.file).name
    return (
        f"# [{function.name}] {_op_type_name(op)} | File: \"{file_name}\", "
        f"Row: {location.row}, Column: {location.col}"
    )


def _variable_offset(op: Op, function: Function) -> int:
    try:
        index = function.variables.index(op.token.value)
    except ValueError:
        raise CasaError(
            ErrorKind.UNKNOWN_IDENTIFIER,
            f"Variable does not exist: {op.token.value}",
            op.token.location,
        ) from None
    return index * 8 + 8


def _function_epilogue(function: Function) -> str:
    if function.name == "main":
        return_types = function.signature.return_types
        if not return_types:
            return_value = "movq $0, %rdi"
        elif return_types == ["int"]:
            return_value = "popq %rdi"
        else:
            raise CasaError(
                ErrorKind.INVALID_SIGNATURE,
                "`main` function should return int or nothing",
                function.location,
            )
        return f"{return_value}\nmovq $60, %rax\nsyscall\nret"
    frame = len(function.variables) * 8 + 8
    return f"pushq (%r14)\nsubq ${frame}, %r14\nret"


def _function_prologue(function: Function) -> str:
    if function.name == "main":
        return (
            "movq %rsp, (args_ptr)\n"
            "leaq return_stack(%rip), %r14\n"
            f"addq ${len(function.variables) * 8}, %r14"
        )
    frame = len(function.variables) * 8 + 8
    return f"addq ${frame}, %r14\npopq (%r14)"


def _missing_related(op: Op, keyword: str) -> CasaError:
    return CasaError(
        ErrorKind.SYNTAX_ERROR,
        f"Related `{keyword}` was not found",
        op.token.location,
    )


class _CodeGenerator:
    def __init__(self, identifiers: Mapping[str, Function]) -> None:
        self.identifiers = identifiers
        self._handlers: dict[OpType, Callable[[Op, Function], str]] = {
            OpType.BIND: lambda op, f: "",
            OpType.BREAK: self._break,
            OpType.CONTINUE: self._continue,
            OpType.DO: self._do,
            OpType.DONE: self._done,
            OpType.FI: lambda op, f: f"{f.name}_fi{op.id}:",
            OpType.FUNCTION_CALL: lambda op, f: f"call {op.token.value}",
            OpType.FUNCTION_EPILOGUE: lambda op, f: (
                "" if f.is_inline else _function_epilogue(f)
            ),
            OpType.FUNCTION_PROLOGUE: lambda op, f: (
                "" if f.is_inline else _function_prologue(f)
            ),
            OpType.IF: lambda op, f: "",
            OpType.INLINE_FUNCTION_CALL: self._inline_call,
            OpType.INTRINSIC: self._intrinsic,
            OpType.PEEK: lambda op, f: "movq %rsp, %r15",
            OpType.PEEK_BIND: self._store_variable,
            OpType.PUSH_BIND: lambda op, f: f"pushq -{_variable_offset(op, f)}(%r14)",
            OpType.PUSH_BOOL: self._push_bool,
            OpType.PUSH_INT: lambda op, f: (
                f"movabs ${op.token.value}, %rax\npushq %rax"
            ),
            OpType.PUSH_STR: lambda op, f: (
                f"leaq {_string_variable_name(op, f)}(%rip), %rsi\npushq %rsi"
            ),
            OpType.RETURN: lambda op, f: _function_epilogue(f),
            OpType.TAKE: lambda op, f: "",
            OpType.TAKE_BIND: self._store_variable,
            OpType.THEN: self._then,
            OpType.WHILE: lambda op, f: f"{f.name}_while{op.id}:",
        }

    def program(self, functions: Iterable[Function]) -> str:
        functions = list(functions)
        return "\n\n".join(
            [_BSS_SECTION, self.text_section(functions), self.data_section(functions)]
        )

    def text_section(self, functions: list[Function]) -> str:
        blocks = [_TEXT_HEADER]
        blocks.extend(
            f"{_function_label(function)}:\n{self.function_ops(function)}"
            for function in functions
        )
        return "\n\n".join(blocks)

    def data_section(self, functions: list[Function]) -> str:
        blocks = [_DATA_HEADER]
        for function in functions:
            blocks.append(
                "\n".join(
                    f"{_string_variable_name(op, function)}:\n    .asciz {op.token.value}"
                    for op in function.ops
                    if op.type is OpType.PUSH_STR
                )
            )
        return "\n".join(blocks)

    def function_ops(self, function: Function) -> str:
        lines = []
        for op in function.ops:
            lines.append(_comment(op, function))
            lines.append(self.op_code(op, function))
        return "\n".join(lines)

    def op_code(self, op: Op, function: Function) -> str:
        handler = self._handlers.get(op.type)
        if handler is None:
            raise CasaError(
                ErrorKind.UNKNOWN_IDENTIFIER,
                f"Unknown identifier '{op.token.value}'",
                op.token.location,
            )
        return handler(op, function)

    def _inline_call(self, op: Op, function: Function) -> str:
        called = self.identifiers.get(op.token.value)
        if called is None:
            raise CasaError(
                ErrorKind.UNKNOWN_IDENTIFIER,
                f"Unknown function identifier {op.token.value}",
                op.token.location,
            )
        return self.function_ops(called)

    def _intrinsic(self, op: Op, function: Function) -> str:
        code = _INTRINSIC_ASM.get(op.intrinsic) if op.intrinsic else None
        if code is None:
            raise CasaError(
                ErrorKind.VALUE_ERROR,
                f"Intrinsic '{op.token.value}' has no assembly implementation",
                op.token.location,
            )
        return code

    def _push_bool(self, op: Op, function: Function) -> str:
        value = op.token.data
        if not isinstance(value, bool):
            raise CasaError(
                ErrorKind.VALUE_ERROR,
                f"Expected a boolean literal, got '{op.token.value}'",
                op.token.location,
            )
        return f"mov ${int(value)}, %rax\npushq %rax"

    def _store_variable(self, op: Op, function: Function) -> str:
        return f"popq %rbx\nmovq %rbx, -{_variable_offset(op, function)}(%r14)"

    def _then(self, op: Op, function: Function) -> str:
        fi_id = related_fi_id(op, function)
        if fi_id is None:
            raise _missing_related(op, "fi")
        return f"popq %rax\ntestq %rax, %rax\njz {function.name}_fi{fi_id}"

    def _do(self, op: Op, function: Function) -> str:
        done_id = related_done_id(op, function)
        if done_id is None:
            raise _missing_related(op, "done")
        return f"popq %rax\ntestq %rax, %rax\njz {function.name}_done{done_id}"

    def _done(self, op: Op, function: Function) -> str:
        while_id = related_while_id(op, function)
        if while_id is None:
            raise _missing_related(op, "while")
        return (
            f"jmp {function.name}_while{while_id}\n{function.name}_done{op.id}:"
        )

    def _break(self, op: Op, function: Function) -> str:
        done_id = related_done_id(op, function)
        if done_id is None:
            raise _missing_related(op, "done")
        return f"jmp {function.name}_done{done_id}"

    def _continue(self, op: Op, function: Function) -> str:
        while_id = related_while_id(op, function)
        if while_id is None:
            raise _missing_related(op, "while")
        return f"jmp {function.name}_while{while_id}"


def generate_assembly_code(
    functions: Iterable[Function], identifiers: Mapping[str, Function]
) -> str:
    """Return the whole assembly program: bss, text and data sections."""
    return _CodeGenerator(identifiers).program(functions)