"""Compiler for the Casa stack-based language: lexer, type checker, x86-64 code generator and command line."""

__version__ = "0.1.0"