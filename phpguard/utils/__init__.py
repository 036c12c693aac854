"""Utility helpers for the scanner."""

from .fileio import read_yaml_file, read_text_file
from .dump import load_token_stream
from .code import iter_dump_files

__all__ = [
    "read_yaml_file",
    "read_text_file",
    "load_token_stream",
    "iter_dump_files",
]
