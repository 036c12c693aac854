"""Detect restricted functions invoked through a variable holding their name.

Catches the shape::

    $func = 'func_num_args';
    $func();

Bindings are tracked in a single forward pass: a variable is bound when it
is assigned a plain string literal and the binding is replaced by the next
literal assignment to the same name. Branches, loops and function bounds are
ignored, so some dynamic calls go unreported, but a call is only ever
reported against a literal the variable really was assigned.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional

from phpguard.cursor import EMPTY_KINDS, find_next, next_non_empty
from phpguard.errors import ConfigError
from phpguard.result import Violation
from phpguard.severity import Severity
from phpguard.tokens import Token, TokenKind, TokenStream

from . import strip_quotes

RULE_ID = "Functions.DynamicCalls.DynamicCalls"
MESSAGE = "Dynamic calling is not recommended in the case of %s."

DEFAULT_RESTRICTED_FUNCTIONS = (
    "assert",
    "compact",
    "extract",
    "func_get_args",
    "func_get_arg",
    "func_num_args",
    "get_defined_vars",
    "mb_parse_str",
    "parse_str",
)

# A "?>" close tag ends a statement just like ";".
STATEMENT_END_KINDS = frozenset({TokenKind.SEMICOLON, TokenKind.CLOSE_TAG})

# Tokens that may follow a complete right-hand side.
EXPRESSION_END_KINDS = STATEMENT_END_KINDS | {TokenKind.CLOSE_PARENTHESIS, TokenKind.COMMA}


@dataclass(frozen=True)
class Binding:
    variable: str
    value: str
    defined_at: int


@dataclass
class BindingState:
    """Last literal bound to each variable name during one scan."""

    bindings: Dict[str, Binding] = field(default_factory=dict)

    def bind(self, variable: str, value: str, position: int) -> None:
        self.bindings[variable] = Binding(variable=variable, value=value, defined_at=position)

    def lookup(self, variable: str) -> Optional[Binding]:
        return self.bindings.get(variable)


class DynamicCallsRule:
    """Flag variables called as functions when they hold a restricted function name."""

    name = "dynamic_calls"
    kinds = frozenset({TokenKind.VARIABLE})

    def __init__(
        self,
        restricted_names: Iterable[str] = DEFAULT_RESTRICTED_FUNCTIONS,
        severity: Severity = Severity.ERROR,
    ) -> None:
        if isinstance(restricted_names, str):
            raise ConfigError(f"{self.name}: restricted_names must be a list of names, not a string")
        names = [str(item) for item in restricted_names]
        if not names:
            raise ConfigError(f"{self.name}: restricted_names must not be empty")
        self._restricted: Mapping[str, bool] = MappingProxyType({item: True for item in names})
        self._severity = severity

    def new_state(self) -> BindingState:
        return BindingState()

    def process(self, token: Token, stream: TokenStream, state: BindingState) -> List[Violation]:
        # The call check reads bindings as they were before this token.
        violations = self._check_call(token, stream, state)
        self._record_assignment(token, stream, state)
        return violations

    # ------------------------------------------------------------------
    # Call-shape detection
    # ------------------------------------------------------------------
    def _check_call(self, token: Token, stream: TokenStream, state: BindingState) -> List[Violation]:
        binding = state.lookup(token.text)
        if binding is None:
            return []

        open_paren = _skip_whitespace(stream, token.index + 1)
        if open_paren is None or stream[open_paren].kind is not TokenKind.OPEN_PARENTHESIS:
            return []

        if binding.value not in self._restricted:
            return []

        delimiter = stream[open_paren]
        return [
            Violation(
                position=delimiter.index,
                rule=RULE_ID,
                severity=self._severity,
                message_template=MESSAGE,
                message_args=(binding.value,),
                line=delimiter.line,
                column=delimiter.column,
            )
        ]

    # ------------------------------------------------------------------
    # Assignment detection
    # ------------------------------------------------------------------
    def _record_assignment(self, token: Token, stream: TokenStream, state: BindingState) -> None:
        operator = _skip_whitespace(stream, token.index + 1)
        if operator is None or stream[operator].kind is not TokenKind.ASSIGNMENT:
            return

        statement_end = find_next(stream, STATEMENT_END_KINDS, operator + 1)
        literal = find_next(stream, EMPTY_KINDS, operator + 1, end=statement_end, exclude=True)
        if literal is None or stream[literal].kind is not TokenKind.STRING_LITERAL:
            return

        following = next_non_empty(stream, literal + 1)
        if following is not None and stream[following].kind not in EXPRESSION_END_KINDS:
            return

        state.bind(token.text, strip_quotes(stream[literal].text), token.index)


def _skip_whitespace(stream: TokenStream, start: int) -> Optional[int]:
    index = start
    while index < len(stream) and stream[index].kind is TokenKind.WHITESPACE:
        index += 1
    if index >= len(stream):
        return None
    return index
