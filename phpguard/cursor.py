"""Search primitives over a :class:`~phpguard.tokens.TokenStream`.

Every helper is stateless and read-only. Indices are plain integers and a
failed search returns :data:`NOT_FOUND` instead of raising, whatever the
bounds passed in.
"""

from __future__ import annotations

from typing import AbstractSet, Optional

from .tokens import TokenKind, TokenStream

NOT_FOUND = None

EMPTY_KINDS = frozenset({TokenKind.WHITESPACE, TokenKind.COMMENT})


def find_next(
    stream: TokenStream,
    kinds: AbstractSet[TokenKind],
    start: int,
    end: Optional[int] = None,
    exclude: bool = False,
    skip: AbstractSet[TokenKind] = frozenset(),
) -> Optional[int]:
    """Return the index of the first token at or after ``start`` that matches.

    ``end`` is exclusive and defaults to the end of the stream. Tokens whose
    kind is in ``skip`` are passed over untested. A token matches when its
    kind is in ``kinds``, or, with ``exclude`` set, when it is not.
    """

    stop = len(stream) if end is None else min(end, len(stream))
    for index in range(max(start, 0), stop):
        kind = stream[index].kind
        if kind in skip:
            continue
        if (kind in kinds) != exclude:
            return index
    return NOT_FOUND


def find_previous(
    stream: TokenStream,
    kinds: AbstractSet[TokenKind],
    start: int,
    end: int = 0,
    exclude: bool = False,
    skip: AbstractSet[TokenKind] = frozenset(),
) -> Optional[int]:
    """Backwards counterpart of :func:`find_next`; ``end`` is inclusive."""

    first = min(start, len(stream) - 1)
    for index in range(first, max(end, 0) - 1, -1):
        kind = stream[index].kind
        if kind in skip:
            continue
        if (kind in kinds) != exclude:
            return index
    return NOT_FOUND


def next_non_empty(stream: TokenStream, start: int, end: Optional[int] = None) -> Optional[int]:
    """Index of the first token at or after ``start`` that is not whitespace or a comment."""

    return find_next(stream, EMPTY_KINDS, start, end, exclude=True)


def previous_non_empty(stream: TokenStream, start: int) -> Optional[int]:
    return find_previous(stream, EMPTY_KINDS, start, exclude=True)
