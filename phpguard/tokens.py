"""Token model shared by the cursor, the rules and the engine."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Iterator, Sequence, Tuple, Union, overload


class TokenKind(str, Enum):
    """Closed set of lexical categories the rules understand."""

    IDENTIFIER = "identifier"
    VARIABLE = "variable"
    STRING_LITERAL = "string_literal"
    WHITESPACE = "whitespace"
    COMMENT = "comment"
    ASSIGNMENT = "assignment"
    OPEN_PARENTHESIS = "open_parenthesis"
    CLOSE_PARENTHESIS = "close_parenthesis"
    OPEN_BRACKET = "open_bracket"
    CLOSE_BRACKET = "close_bracket"
    COMMA = "comma"
    SEMICOLON = "semicolon"
    CLOSE_TAG = "close_tag"
    OTHER = "other"

    @classmethod
    def parse(cls, name: str) -> "TokenKind":
        """Map an enum value or a PHP tokenizer name onto a kind.

        Unrecognised names collapse to ``OTHER``.
        """

        try:
            return cls(name)
        except ValueError:
            return PHP_TOKEN_KINDS.get(name, cls.OTHER)


# Token type names as emitted by PHP's tokenizer (and PHP_CodeSniffer for the
# single character tokens).
PHP_TOKEN_KINDS: Dict[str, TokenKind] = {
    "T_STRING": TokenKind.IDENTIFIER,
    "T_NAME_QUALIFIED": TokenKind.IDENTIFIER,
    "T_NAME_FULLY_QUALIFIED": TokenKind.IDENTIFIER,
    "T_VARIABLE": TokenKind.VARIABLE,
    "T_CONSTANT_ENCAPSED_STRING": TokenKind.STRING_LITERAL,
    "T_WHITESPACE": TokenKind.WHITESPACE,
    "T_COMMENT": TokenKind.COMMENT,
    "T_DOC_COMMENT": TokenKind.COMMENT,
    "T_EQUAL": TokenKind.ASSIGNMENT,
    "T_OPEN_PARENTHESIS": TokenKind.OPEN_PARENTHESIS,
    "T_CLOSE_PARENTHESIS": TokenKind.CLOSE_PARENTHESIS,
    "T_OPEN_SQUARE_BRACKET": TokenKind.OPEN_BRACKET,
    "T_OPEN_SHORT_ARRAY": TokenKind.OPEN_BRACKET,
    "T_CLOSE_SQUARE_BRACKET": TokenKind.CLOSE_BRACKET,
    "T_CLOSE_SHORT_ARRAY": TokenKind.CLOSE_BRACKET,
    "T_COMMA": TokenKind.COMMA,
    "T_SEMICOLON": TokenKind.SEMICOLON,
    "T_CLOSE_TAG": TokenKind.CLOSE_TAG,
}


@dataclass(frozen=True)
class Token:
    """A positioned lexical unit."""

    index: int
    kind: TokenKind
    text: str
    line: int
    column: int


class TokenStream(Sequence[Token]):
    """Immutable, densely indexed sequence of tokens for one file."""

    def __init__(self, tokens: Iterable[Token]) -> None:
        self._tokens: Tuple[Token, ...] = tuple(tokens)
        for expected, token in enumerate(self._tokens):
            if token.index != expected:
                raise ValueError(
                    f"Token indices must be dense and increasing; expected {expected}, got {token.index}"
                )

    @classmethod
    def from_pieces(cls, pieces: Iterable[Tuple[Union[TokenKind, str], str]]) -> "TokenStream":
        """Build a stream from ``(kind, text)`` pairs, deriving positions from the text."""

        tokens = []
        line, column = 1, 1
        for index, (kind, text) in enumerate(pieces):
            if not isinstance(kind, TokenKind):
                kind = TokenKind.parse(kind)
            tokens.append(Token(index=index, kind=kind, text=text, line=line, column=column))
            newlines = text.count("\n")
            if newlines:
                line += newlines
                column = len(text) - text.rfind("\n")
            else:
                column += len(text)
        return cls(tokens)

    @overload
    def __getitem__(self, index: int) -> Token: ...

    @overload
    def __getitem__(self, index: slice) -> Tuple[Token, ...]: ...

    def __getitem__(self, index):
        return self._tokens[index]

    def __len__(self) -> int:
        return len(self._tokens)

    def __iter__(self) -> Iterator[Token]:
        return iter(self._tokens)

    def __repr__(self) -> str:
        return f"TokenStream({len(self._tokens)} tokens)"
