"""Rule contract shared by every analysis rule."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Protocol, Tuple

from phpguard.errors import ScanError
from phpguard.result import Violation
from phpguard.tokens import Token, TokenKind, TokenStream


class Rule(Protocol):
    """Protocol implemented by all rule evaluators.

    A rule is configured once and may be shared between scans; anything it
    learns while walking a file lives in the object returned by
    :meth:`new_state`, which the engine creates per scan and then drops.
    """

    name: str
    kinds: FrozenSet[TokenKind]

    def new_state(self) -> Any:
        """Return fresh private state for one scan."""

    def process(self, token: Token, stream: TokenStream, state: Any) -> List[Violation]:
        """Inspect ``token`` and return any violations it triggers."""


@dataclass
class ScanContext:
    """Per-file scan state: one private state object per rule and the findings so far.

    Violations are kept with the registration order of the rule that produced them.
    """

    stream: TokenStream
    path: str
    states: Dict[str, Any] = field(default_factory=dict)
    violations: List[Tuple[int, Violation]] = field(default_factory=list)
    errors: List[ScanError] = field(default_factory=list)


def strip_quotes(text: str) -> str:
    """Remove one pair of matching single or double quotes around ``text``."""

    if len(text) >= 2 and text[0] == text[-1] and text[0] in ("'", '"'):
        return text[1:-1]
    return text
