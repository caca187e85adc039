"""Assembling and linking generated assembly with the system toolchain."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Union


class CompileError(Exception):
    """Raised when the assembler or linker fails."""


def _run(command: list[str], failure: str) -> None:
    try:
        result = subprocess.run(command)
    except OSError as error:
        raise CompileError(f"{failure}: {error}") from error
    if result.returncode != 0:
        raise CompileError(failure)


def compile_assembly_code(asm_path: Union[str, Path]) -> Path:
    """Assemble and link ``asm_path``; outputs go to the working directory.

    Returns the path of the executable.
    """
    stem = Path(asm_path).stem
    if not stem:
        raise CompileError("Invalid assembly file name")
    obj_path = Path(f"{stem}.o")
    exe_path = Path(stem)

    _run(["as", "-g", "-o", str(obj_path), str(asm_path)], "Compiling failed")
    _run(["ld", "-melf_x86_64", "-o", str(exe_path), str(obj_path)], "Linking failed")
    return exe_path