"""Static checking of the types that flow over the value stack."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Mapping, Optional, Sequence

from casa.common import Function, Intrinsic, Location, Op, OpType
from casa.errors import ErrorKind, format_error


class TypeCheckErrorKind(Enum):
    BRANCH_MODIFIED_STACK = "BranchModifiedStack"
    INVALID_SIGNATURE = "InvalidSignature"
    INVALID_STACK_STATE = "InvalidStackState"
    STACK_UNDERFLOW = "StackUnderflow"
    SYNTAX_ERROR = "SyntaxError"
    UNKNOWN_IDENTIFIER = "UnknownIdentifier"
    VALUE_ERROR = "ValueError"

    def __str__(self) -> str:
        return self.value


class TypeCheckError(Exception):
    """Raised when a function does not type check."""

    def __init__(
        self,
        kind: TypeCheckErrorKind,
        location: Optional[Location] = None,
        message: str = "",
    ) -> None:
        super().__init__(message or kind.value)
        self.kind = kind
        self.location = location
        self.message = message or kind.value

    def __str__(self) -> str:
        return format_error(self.location, ErrorKind(self.kind.value), self.message)


@dataclass(frozen=True)
class _TypeNode:
    ty: str
    location: Location


class _TypeStack:
    """Stack of types; errors carry the location of the op being checked."""

    def __init__(self, nodes: Iterable[_TypeNode] = ()) -> None:
        self.nodes: list[_TypeNode] = list(nodes)
        self.location: Optional[Location] = None

    @classmethod
    def from_types(cls, types: Iterable[str], location: Location) -> "_TypeStack":
        return cls(_TypeNode(ty, location) for ty in types)

    def copy(self) -> list[_TypeNode]:
        return list(self.nodes)

    def _error(self, kind: TypeCheckErrorKind, message: str) -> TypeCheckError:
        return TypeCheckError(kind, self.location, message)

    def peek_nth(self, n: int) -> _TypeNode:
        if n >= len(self.nodes):
            raise self._error(
                TypeCheckErrorKind.STACK_UNDERFLOW,
                f"Expected at least {n + 1} values on the stack, found {len(self.nodes)}",
            )
        return self.nodes[-1 - n]

    def peek(self) -> _TypeNode:
        return self.peek_nth(0)

    def pop(self) -> _TypeNode:
        node = self.peek()
        self.nodes.pop()
        return node

    def _expect(self, node: _TypeNode, expected: str) -> None:
        if node.ty != expected:
            raise self._error(
                TypeCheckErrorKind.VALUE_ERROR,
                f"Expected type '{expected}' but got '{node.ty}'",
            )

    def peek_type(self, expected: str) -> None:
        self._expect(self.peek(), expected)

    def pop_type(self, expected: str) -> None:
        self._expect(self.pop(), expected)

    def push(self, node: _TypeNode) -> None:
        self.nodes.append(node)

    def push_type(self, ty: str, location: Location) -> None:
        self.nodes.append(_TypeNode(ty, location))


def _matching(stack1: Sequence[_TypeNode], stack2: Sequence[_TypeNode]) -> bool:
    return len(stack1) == len(stack2) and all(
        a.ty == b.ty for a, b in zip(stack1, stack2)
    )


def _types(nodes: Sequence[_TypeNode]) -> str:
    return "[" + " ".join(node.ty for node in nodes) + "]"


def _arithmetic(stack: _TypeStack, location: Location) -> None:
    stack.pop_type("int")
    stack.peek_type("int")


def _boolean_operator(stack: _TypeStack, location: Location) -> None:
    stack.pop_type("bool")
    stack.peek_type("bool")


def _comparison(stack: _TypeStack, location: Location) -> None:
    stack.pop_type("int")
    stack.pop_type("int")
    stack.push_type("bool", location)


def _drop(stack: _TypeStack, location: Location) -> None:
    stack.pop()


def _dup(stack: _TypeStack, location: Location) -> None:
    stack.push_type(stack.peek().ty, location)


def _load(stack: _TypeStack, location: Location) -> None:
    stack.pop_type("ptr")
    stack.push_type("any", location)


def _over(stack: _TypeStack, location: Location) -> None:
    top = stack.pop()
    second = stack.peek()
    stack.push(top)
    stack.push(second)


def _rot(stack: _TypeStack, location: Location) -> None:
    t1 = stack.pop()
    t2 = stack.pop()
    t3 = stack.pop()
    stack.push(t2)
    stack.push(t1)
    stack.push(t3)


def _bitshift(stack: _TypeStack, location: Location) -> None:
    stack.pop_type("int")
    stack.pop_type("int")
    stack.push_type("int", location)


def _store(stack: _TypeStack, location: Location) -> None:
    stack.pop_type("ptr")
    stack.pop()


def _swap(stack: _TypeStack, location: Location) -> None:
    t1 = stack.pop()
    t2 = stack.pop()
    stack.push(t1)
    stack.push(t2)


def _syscall(argc: int) -> Callable[[_TypeStack, Location], None]:
    def check(stack: _TypeStack, location: Location) -> None:
        stack.pop_type("int")
        for _ in range(argc):
            stack.pop()
        stack.push_type("int", location)

    return check


_INTRINSIC_CHECKS: dict[Intrinsic, Callable[[_TypeStack, Location], None]] = {
    Intrinsic.AND: _boolean_operator,
    Intrinsic.ADD: _arithmetic,
    Intrinsic.DIV: _arithmetic,
    Intrinsic.DROP: _drop,
    Intrinsic.DUP: _dup,
    Intrinsic.EQ: _comparison,
    Intrinsic.GE: _comparison,
    Intrinsic.GT: _comparison,
    Intrinsic.LE: _comparison,
    Intrinsic.LOAD_BYTE: _load,
    Intrinsic.LOAD_WORD: _load,
    Intrinsic.LOAD_DWORD: _load,
    Intrinsic.LOAD_QWORD: _load,
    Intrinsic.LT: _comparison,
    Intrinsic.MOD: _arithmetic,
    Intrinsic.MUL: _arithmetic,
    Intrinsic.NE: _comparison,
    Intrinsic.OR: _boolean_operator,
    Intrinsic.OVER: _over,
    Intrinsic.ROT: _rot,
    Intrinsic.SHL: _bitshift,
    Intrinsic.SHR: _bitshift,
    Intrinsic.STORE_BYTE: _store,
    Intrinsic.STORE_WORD: _store,
    Intrinsic.STORE_DWORD: _store,
    Intrinsic.STORE_QWORD: _store,
    Intrinsic.SUB: _arithmetic,
    Intrinsic.SWAP: _swap,
    Intrinsic.SYSCALL0: _syscall(0),
    Intrinsic.SYSCALL1: _syscall(1),
    Intrinsic.SYSCALL2: _syscall(2),
    Intrinsic.SYSCALL3: _syscall(3),
    Intrinsic.SYSCALL4: _syscall(4),
    Intrinsic.SYSCALL5: _syscall(5),
    Intrinsic.SYSCALL6: _syscall(6),
}

_BRANCH_OPS = {OpType.BREAK, OpType.CONTINUE, OpType.DO, OpType.DONE, OpType.FI}


def _check_branch_op(
    op: Op, stack: _TypeStack, before_branch: Optional[list[_TypeNode]]
) -> None:
    if before_branch is None:
        raise TypeCheckError(
            TypeCheckErrorKind.SYNTAX_ERROR,
            op.token.location,
            f"'{op.token.value}' is not inside a block",
        )
    if op.type is OpType.DO:
        stack.pop_type("bool")
    if _matching(stack.nodes, before_branch):
        return
    kind = (
        TypeCheckErrorKind.INVALID_STACK_STATE
        if op.type in (OpType.BREAK, OpType.CONTINUE)
        else TypeCheckErrorKind.BRANCH_MODIFIED_STACK
    )
    raise TypeCheckError(
        kind,
        op.token.location,
        f"Stack {_types(stack.nodes)} does not match {_types(before_branch)} "
        "from before the block",
    )


def _check_call(
    op: Op, stack: _TypeStack, identifiers: Mapping[str, Function]
) -> None:
    called = identifiers.get(op.token.value)
    if not isinstance(called, Function):
        raise TypeCheckError(
            TypeCheckErrorKind.UNKNOWN_IDENTIFIER,
            op.token.location,
            f"Unknown function '{op.token.value}'",
        )
    for param in called.signature.params:
        stack.pop_type(param.ty)
    for return_type in called.signature.return_types:
        stack.push_type(return_type, op.token.location)


def type_check_function(
    function: Function, identifiers: Mapping[str, Function]
) -> None:
    """Check one function's ops against its signature, raising TypeCheckError."""
    stack = _TypeStack.from_types(function.signature.param_types(), function.location)
    return_stack = _TypeStack.from_types(
        function.signature.return_types, function.location
    ).nodes
    variables: dict[str, str] = {}
    peek_index = 0
    before_branch: Optional[list[_TypeNode]] = None

    for op in function.ops:
        location = op.token.location
        stack.location = location
        op_type = op.type
        if op_type is OpType.BIND:
            peek_index = 0
        elif op_type in _BRANCH_OPS:
            _check_branch_op(op, stack, before_branch)
        elif op_type in (OpType.FUNCTION_CALL, OpType.INLINE_FUNCTION_CALL):
            _check_call(op, stack, identifiers)
        elif op_type in (
            OpType.FUNCTION_EPILOGUE,
            OpType.FUNCTION_PROLOGUE,
            OpType.IF,
            OpType.PEEK,
            OpType.TAKE,
        ):
            pass
        elif op_type is OpType.INTRINSIC:
            if op.intrinsic is None:
                raise TypeCheckError(
                    TypeCheckErrorKind.UNKNOWN_IDENTIFIER,
                    location,
                    f"Unknown intrinsic '{op.token.value}'",
                )
            _INTRINSIC_CHECKS[op.intrinsic](stack, location)
        elif op_type is OpType.PEEK_BIND:
            variables[op.token.value] = stack.peek_nth(peek_index).ty
            peek_index += 1
        elif op_type is OpType.TAKE_BIND:
            variables[op.token.value] = stack.pop().ty
        elif op_type is OpType.PUSH_BIND:
            ty = variables.get(op.token.value)
            if ty is None:
                raise TypeCheckError(
                    TypeCheckErrorKind.UNKNOWN_IDENTIFIER,
                    location,
                    f"Unknown variable '{op.token.value}'",
                )
            stack.push_type(ty, location)
        elif op_type is OpType.PUSH_BOOL:
            stack.push_type("bool", location)
        elif op_type is OpType.PUSH_INT:
            stack.push_type("int", location)
        elif op_type is OpType.PUSH_STR:
            stack.push_type("str", location)
        elif op_type is OpType.RETURN:
            if not _matching(stack.nodes, return_stack):
                raise TypeCheckError(
                    TypeCheckErrorKind.INVALID_STACK_STATE,
                    location,
                    f"Stack {_types(stack.nodes)} does not match the return types "
                    f"{_types(return_stack)}",
                )
        elif op_type is OpType.THEN:
            stack.pop_type("bool")
            before_branch = stack.copy()
        elif op_type is OpType.WHILE:
            before_branch = stack.copy()
        else:
            raise TypeCheckError(
                TypeCheckErrorKind.UNKNOWN_IDENTIFIER,
                location,
                f"Unknown identifier '{op.token.value}'",
            )

    if not _matching(stack.nodes, return_stack):
        raise TypeCheckError(
            TypeCheckErrorKind.INVALID_SIGNATURE,
            function.location,
            f"Function '{function.name}' ends with stack {_types(stack.nodes)} "
            f"but its signature returns {_types(return_stack)}",
        )


def type_check_program(
    functions: Iterable[Function], identifiers: Mapping[str, Function]
) -> None:
    """Check every function in order; the first failure is raised."""
    for function in functions:
        type_check_function(function, identifiers)