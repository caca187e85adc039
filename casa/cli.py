"""Command line entry point: compile a program to assembly and an executable."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional, Sequence

from casa.asm import generate_assembly_code
from casa.common import global_identifiers
from casa.compile import CompileError, compile_assembly_code
from casa.errors import CasaError
from casa.lexer import parse_code_file
from casa.type_check import TypeCheckError, type_check_program

DEFAULT_CODE_FILE = "test.casa"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="casa", description="Compile a program to x86-64 assembly and link it."
    )
    parser.add_argument(
        "source",
        nargs="?",
        default=DEFAULT_CODE_FILE,
        help=f"program file (default: {DEFAULT_CODE_FILE})",
    )
    parser.add_argument(
        "-o",
        "--output",
        help="assembly file to write (default: the source file with .asm suffix)",
    )
    parser.add_argument(
        "-S",
        "--assembly-only",
        action="store_true",
        help="write the assembly without assembling and linking it",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    source = Path(args.source)
    assembly_file = Path(args.output) if args.output else source.with_suffix(".asm")

    try:
        functions = parse_code_file(source)
        identifiers = global_identifiers(functions)
        type_check_program(functions, identifiers)
        assembly_code = generate_assembly_code(functions, identifiers)
        assembly_file.write_text(f"{assembly_code}\n", encoding="utf-8")
        print(assembly_code)
        if not args.assembly_only:
            compile_assembly_code(assembly_file)
    except (CasaError, TypeCheckError, CompileError) as error:
        print(error, file=sys.stderr)
        return 1
    except OSError as error:
        print(f"Cannot write '{assembly_file}': {error}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())