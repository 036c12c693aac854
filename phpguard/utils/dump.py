"""Load token dumps written by an external tokenizer."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Mapping

import yaml

from phpguard.tokens import Token, TokenKind, TokenStream

from .fileio import read_text_file, read_yaml_file


def load_token_stream(path: Path) -> TokenStream:
    """Read a token dump into a :class:`TokenStream`.

    The dump is a JSON or YAML list (optionally under a ``tokens`` key) of
    entries with ``kind``/``type`` and ``text``/``content`` fields, as written
    by PHP_CodeSniffer style tokenizers. ``line`` and ``column`` are used when
    every entry carries them and derived from the text otherwise.
    """

    if path.suffix == ".json":
        text = read_text_file(path)
        data = json.loads(text) if text.strip() else None
    else:
        try:
            data = read_yaml_file(path)
        except yaml.YAMLError as exc:
            raise ValueError(f"Cannot parse token dump {path}: {exc}") from exc
    if data is None:
        raise ValueError(f"Token dump {path} does not exist or is empty")
    if isinstance(data, Mapping):
        data = data.get("tokens")
    if not isinstance(data, list):
        raise ValueError(f"Token dump at {path} is not a list of tokens")

    entries = [_normalize_entry(path, position, entry) for position, entry in enumerate(data)]
    if all("line" in entry and "column" in entry for entry in entries):
        return TokenStream(
            Token(
                index=position,
                kind=entry["kind"],
                text=entry["text"],
                line=entry["line"],
                column=entry["column"],
            )
            for position, entry in enumerate(entries)
        )
    return TokenStream.from_pieces((entry["kind"], entry["text"]) for entry in entries)


def _normalize_entry(path: Path, position: int, entry: Any) -> Dict[str, Any]:
    if not isinstance(entry, Mapping):
        raise ValueError(f"Token {position} in {path} is not a mapping")
    kind = entry.get("kind", entry.get("type"))
    text = entry.get("text", entry.get("content"))
    if kind is None or text is None:
        raise ValueError(f"Token {position} in {path} needs a kind and a text")

    normalized: Dict[str, Any] = {"kind": TokenKind.parse(str(kind)), "text": str(text)}
    for key in ("line", "column"):
        if key in entry:
            try:
                normalized[key] = int(entry[key])
            except (TypeError, ValueError) as exc:
                raise ValueError(f"Token {position} in {path} has a non-integer {key}") from exc
    return normalized
