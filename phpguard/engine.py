"""Single-pass rule dispatch over a token stream."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .errors import ConfigError, ScanError
from .result import ScanResult
from .rules import Rule, ScanContext
from .tokens import TokenKind, TokenStream

logger = logging.getLogger(__name__)


class RuleEngine:
    """Route every token to the rules interested in its kind.

    The engine holds only configured rules. Each call to :meth:`scan` builds a
    new :class:`ScanContext`, so bindings and findings never carry over from
    one file to the next.
    """

    def __init__(self, rules: Iterable[Rule]) -> None:
        self._rules: Tuple[Rule, ...] = tuple(rules)
        seen = set()
        for rule in self._rules:
            if rule.name in seen:
                raise ConfigError(f"Rule {rule.name!r} registered more than once")
            seen.add(rule.name)
        self._order: Dict[str, int] = {rule.name: order for order, rule in enumerate(self._rules)}
        self._dispatch: Dict[TokenKind, Tuple[Rule, ...]] = {
            kind: tuple(rule for rule in self._rules if kind in rule.kinds) for kind in TokenKind
        }

    @property
    def rules(self) -> Sequence[Rule]:
        return self._rules

    def scan(
        self,
        stream: TokenStream,
        path: str = "<memory>",
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> ScanResult:
        context = ScanContext(stream=stream, path=path)
        logger.debug("Scanning %s (%d tokens, %d rules)", path, len(stream), len(self._rules))

        # A rule whose state cannot be built sits out this file only.
        for rule in self._rules:
            try:
                context.states[rule.name] = rule.new_state()
            except Exception as exc:  # pylint: disable=broad-except
                self._record_fault(context, rule, exc, position=0, line=None)

        cancelled = False
        for token in stream:
            if should_stop is not None and should_stop():
                logger.debug("Scan of %s stopped before token %d", path, token.index)
                cancelled = True
                break
            for rule in self._dispatch[token.kind]:
                if rule.name not in context.states:
                    continue
                try:
                    produced = list(rule.process(token, stream, context.states[rule.name]))
                except Exception as exc:  # pylint: disable=broad-except
                    self._record_fault(context, rule, exc, position=token.index, line=token.line)
                    continue
                context.violations.extend((self._order[rule.name], violation) for violation in produced)

        return self._finish(context, cancelled)

    def _record_fault(
        self,
        context: ScanContext,
        rule: Rule,
        exc: Exception,
        position: int,
        line: Optional[int],
    ) -> None:
        logger.warning(
            "Rule %s failed on token %d in %s: %s",
            rule.name,
            position,
            context.path,
            exc,
            exc_info=exc,
        )
        context.errors.append(
            ScanError(
                rule=rule.name,
                position=position,
                message=str(exc) or type(exc).__name__,
                line=line,
            )
        )

    def _finish(self, context: ScanContext, cancelled: bool) -> ScanResult:
        result = ScanResult(path=context.path, cancelled=cancelled)
        ordered = sorted(context.violations, key=lambda item: (item[1].position, item[0]))
        for _, violation in ordered:
            result.add_violation(violation)
        for error in context.errors:
            result.add_error(error)
        logger.debug(
            "Finished %s: %d violations, %d rule errors",
            context.path,
            len(result.violations),
            len(result.errors),
        )
        return result


def scan_many(
    engine_factory: Callable[[], RuleEngine],
    streams: Sequence[Tuple[str, TokenStream]],
    max_workers: Optional[int] = None,
) -> List[ScanResult]:
    """Scan independent files concurrently; results come back in input order."""

    def _scan(item: Tuple[str, TokenStream]) -> ScanResult:
        path, stream = item
        return engine_factory().scan(stream, path=path)

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        return list(pool.map(_scan, streams))
