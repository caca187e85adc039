# casa

`casa` compiles programs written in Casa, a small stack-based language, into
x86-64 GNU assembly. It can then assemble and link them into a Linux
executable with `as` and `ld`.

## Installation

```
pip install .
```

Building executables needs GNU `as` and `ld` on the `PATH`. Writing the
assembly alone (`-S`) needs neither tool.

## Usage

```
casa program.casa
```

The command does the following:

1. Parses the source file. Without an argument it reads `test.casa`.
2. Type-checks every function.
3. Writes the assembly to the source path with an `.asm` suffix, or to the
   file given with `-o/--output`, and prints it to standard output.
4. Runs `as -g` and `ld -melf_x86_64` on it. The object file and the
   executable are named after the assembly file's stem and placed in the
   current working directory.

To write the assembly and stop there:

```
casa -S -o program.asm program.casa
```

Errors are printed to standard error and the command exits with status 1.

## The language

A program is a sequence of functions. `main` is the entry point:

```
fun add3 int -> int ::
    3 add
end

fun main -> int ::
    39 add3
end
```

- A signature lists parameter types, each written `type` or `name:type`.
  Parameters arrive on the stack; a parameter's name does not create a
  variable. The parameters may be followed by `->` and the return types.
  The body starts with `::` and ends with `end`.
- `main` takes no parameters. It returns nothing, or a single `int` that
  becomes the exit status.
- Functions declared with `inline fun` are expanded at each call site.
- Literals are 32-bit integers, `true`, `false`, and double-quoted strings
  on one line.
- Intrinsics are `add`, `sub`, `mul`, `div`, `mod`, `and`, `or`, `shl`,
  `shr`, `dup`, `drop`, `swap`, `over` and `rot`, plus `syscall0` through
  `syscall6`. A syscall pops the syscall number and then its arguments, and
  pushes the result.
- Control flow uses `if ... then ... fi` and `while ... do ... done`, with
  `break` and `continue` inside loops. `return` leaves a function early.
- For variables, `take a b bind` pops values into named variables, and
  `peek a b bind` copies them without popping. Writing a variable's name
  pushes its value.

The type checker compares each function's stack effect with its signature.
`then` and `do` need a `bool`. A `fi` or `done` must find the stack as it was
when its block began.

## Library use

```python
from casa.asm import generate_assembly_code
from casa.common import global_identifiers
from casa.compile import compile_assembly_code
from casa.lexer import parse_code
from casa.type_check import type_check_program

functions = parse_code(source_text, "program.casa")
identifiers = global_identifiers(functions)
type_check_program(functions, identifiers)
assembly = generate_assembly_code(functions, identifiers)
```

- `casa.lexer.parse_code_file(path)` reads and parses a file.
- `casa.lexer.parse_token(text, location)` classifies a single word.
- `casa.compile.compile_assembly_code(path)` assembles and links a written
  `.asm` file and returns the executable's path.

Errors are raised as exceptions:

- Syntax errors and unreadable files raise `casa.errors.CasaError`. So do
  problems found while generating code.
- Type errors raise `casa.type_check.TypeCheckError`. Its `kind` is a
  `TypeCheckErrorKind`.
- Assembler or linker failures raise `casa.compile.CompileError`.

## What it does not do

- The comparison intrinsics (`eq`, `ne`, `lt`, `le`, `gt`, `ge`) and the
  memory intrinsics (`load_byte` … `load_qword`, `store_byte` …
  `store_qword`) pass the type checker. Code generation rejects them with a
  `CasaError`.
- The keywords `cast`, `const`, `elif`, `else`, `endif`, `enum` and `typeof`
  are reserved but not supported. Using them in a function body is a syntax
  error.
- The only target is x86-64 Linux. Building uses the external `as` and `ld`.