"""Detect restricted literals passed at a fixed argument position of specific calls."""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Iterable, List, Mapping, Optional, Tuple

from phpguard.cursor import find_next, next_non_empty, previous_non_empty
from phpguard.errors import ConfigError
from phpguard.result import Violation
from phpguard.severity import Severity
from phpguard.tokens import Token, TokenKind, TokenStream

from . import strip_quotes

OPENERS = frozenset({TokenKind.OPEN_PARENTHESIS, TokenKind.OPEN_BRACKET})
CLOSERS = frozenset({TokenKind.CLOSE_PARENTHESIS, TokenKind.CLOSE_BRACKET})
ARGUMENT_STRUCTURE_KINDS = OPENERS | CLOSERS | {TokenKind.COMMA}

# Preceding tokens that turn ``name(`` into something other than a function call.
NON_CALL_PREFIXES = frozenset({"->", "?->", "::", "function", "new", "const"})

CACHE_GROUP_RULE_ID = "Compatibility.RestrictedCacheGroup.wp_memcached"
CACHE_GROUP_MESSAGE = (
    "Please do not use cache group %s in %s(), as it is already in use by wp-memcached: "
    "https://docs.wpvip.com/technical-references/caching/object-cache/."
)
CACHE_GROUP_FUNCTIONS = ("wp_cache_set", "wp_cache_add")
CACHE_GROUP_POSITION = 3

WP_MEMCACHED_GROUPS = (
    "category_relationships",
    "post_format_relationships",
    "post_tag_relationships",
    "term_meta",
    "user_meta",
    "blog-details",
    "blog-id-cache",
    "blog-lookup",
    "bookmark",
    "calendar",
    "category",
    "comment",
    "counts",
    "general",
    "global-posts",
    "options",
    "plugins",
    "post_ancestors",
    "post_meta",
    "posts",
    "rss",
    "site-lookup",
    "site-options",
    "site-transient",
    "terms",
    "themes",
    "timeinfo",
    "transient",
    "useremail",
    "userlogins",
    "usermeta",
    "users",
    "userslugs",
    "widget",
)


def _name_set(rule: str, field_name: str, values: Iterable[str], fold_case: bool) -> Mapping[str, bool]:
    if isinstance(values, str):
        raise ConfigError(f"{rule}: {field_name} must be a list of names, not a string")
    names = [str(value) for value in values]
    if not names:
        raise ConfigError(f"{rule}: {field_name} must not be empty")
    return MappingProxyType({(name.lower() if fold_case else name): True for name in names})


class LiteralArgumentRule:
    """Report calls whose argument at ``position`` is a restricted name.

    ``position`` is 1-based. Calls with fewer arguments are ignored.
    Function names match case-insensitively, as PHP resolves them;
    restricted names match exactly unless ``case_sensitive`` is false.
    """

    kinds = frozenset({TokenKind.IDENTIFIER})

    def __init__(
        self,
        name: str,
        rule_id: str,
        target_functions: Iterable[str],
        position: int,
        restricted_names: Iterable[str],
        message: str,
        severity: Severity = Severity.ERROR,
        case_sensitive: bool = True,
    ) -> None:
        if isinstance(position, bool) or not isinstance(position, int) or position < 1:
            raise ConfigError(f"{name}: argument position must be a positive integer, got {position!r}")
        self.name = name
        self.rule_id = rule_id
        self.position = position
        self.message = message
        self.severity = severity
        self.case_sensitive = case_sensitive
        self._targets = _name_set(name, "target_functions", target_functions, fold_case=True)
        self._restricted = _name_set(name, "restricted_names", restricted_names, fold_case=not case_sensitive)

    def new_state(self) -> None:
        return None

    def process(self, token: Token, stream: TokenStream, state: Any) -> List[Violation]:
        if function_name(token.text).lower() not in self._targets:
            return []

        open_paren = next_non_empty(stream, token.index + 1)
        if open_paren is None or stream[open_paren].kind is not TokenKind.OPEN_PARENTHESIS:
            return []

        previous = previous_non_empty(stream, token.index - 1)
        if previous is not None and stream[previous].text.lower() in NON_CALL_PREFIXES:
            return []

        arguments = split_arguments(stream, open_paren)
        if arguments is None or len(arguments) < self.position:
            return []

        raw = argument_text(stream, arguments[self.position - 1])
        value = strip_quotes(raw)
        if not self.case_sensitive:
            value = value.lower()
        if value not in self._restricted:
            return []

        return [
            Violation(
                position=token.index,
                rule=self.rule_id,
                severity=self.severity,
                message_template=self.message,
                message_args=(raw, token.text),
                line=token.line,
                column=token.column,
            )
        ]


class RestrictedCacheGroupRule(LiteralArgumentRule):
    """Flag object cache writes into groups already used by wp-memcached."""

    def __init__(
        self,
        target_functions: Iterable[str] = CACHE_GROUP_FUNCTIONS,
        position: int = CACHE_GROUP_POSITION,
        restricted_names: Iterable[str] = WP_MEMCACHED_GROUPS,
        severity: Severity = Severity.ERROR,
        case_sensitive: bool = True,
    ) -> None:
        super().__init__(
            name="restricted_cache_group",
            rule_id=CACHE_GROUP_RULE_ID,
            target_functions=target_functions,
            position=position,
            restricted_names=restricted_names,
            message=CACHE_GROUP_MESSAGE,
            severity=severity,
            case_sensitive=case_sensitive,
        )


def split_arguments(stream: TokenStream, open_paren: int) -> Optional[List[Tuple[int, int]]]:
    """Return ``(start, end)`` token ranges of the top-level arguments of a call.

    ``end`` is exclusive. Returns ``None`` when the call is never closed.
    """

    arguments: List[Tuple[int, int]] = []
    depth = 0
    argument_start = open_paren + 1
    index = find_next(stream, ARGUMENT_STRUCTURE_KINDS, open_paren + 1)
    while index is not None:
        kind = stream[index].kind
        if kind in OPENERS:
            depth += 1
        elif kind in CLOSERS:
            if depth == 0:
                arguments.append((argument_start, index))
                break
            depth -= 1
        elif depth == 0:
            arguments.append((argument_start, index))
            argument_start = index + 1
        index = find_next(stream, ARGUMENT_STRUCTURE_KINDS, index + 1)
    else:
        return None

    if arguments and not argument_text(stream, arguments[-1]):
        arguments.pop()
    return arguments


def argument_text(stream: TokenStream, bounds: Tuple[int, int]) -> str:
    start, end = bounds
    return "".join(
        stream[index].text for index in range(start, end) if stream[index].kind is not TokenKind.COMMENT
    ).strip()


def function_name(text: str) -> str:
    """Drop the leading ``\\`` of a call into the global namespace; other qualified names are kept."""

    if text.startswith("\\") and "\\" not in text[1:]:
        return text[1:]
    return text
