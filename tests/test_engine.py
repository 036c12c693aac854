import logging

import pytest

from phpguard.engine import RuleEngine, scan_many
from phpguard.errors import ConfigError
from phpguard.result import Violation
from phpguard.rules.dynamic_calls import DynamicCallsRule
from phpguard.rules.restricted_cache_group import RestrictedCacheGroupRule
from phpguard.severity import Severity
from phpguard.tokens import TokenKind as K
from phpguard.tokens import TokenStream


class EveryTokenRule:
    """Reports each token of the given kinds; fails on one chosen index."""

    def __init__(self, name, kinds, fail_at=None):
        self.name = name
        self.kinds = frozenset(kinds)
        self.fail_at = fail_at

    def new_state(self):
        return []

    def process(self, token, stream, state):
        state.append(token.index)
        if token.index == self.fail_at:
            raise RuntimeError("boom")
        return [
            Violation(
                position=token.index,
                rule=self.name,
                severity=Severity.WARNING,
                message_template="seen %s",
                message_args=(token.text,),
            )
        ]


def mixed_stream():
    # $fn = 'extract'; $fn(); wp_cache_set($k, $d, 'posts');
    return TokenStream.from_pieces(
        [
            (K.VARIABLE, "$fn"),
            (K.WHITESPACE, " "),
            (K.ASSIGNMENT, "="),
            (K.WHITESPACE, " "),
            (K.STRING_LITERAL, "'extract'"),
            (K.SEMICOLON, ";"),
            (K.WHITESPACE, "\n"),
            (K.VARIABLE, "$fn"),
            (K.OPEN_PARENTHESIS, "("),
            (K.CLOSE_PARENTHESIS, ")"),
            (K.SEMICOLON, ";"),
            (K.WHITESPACE, "\n"),
            (K.IDENTIFIER, "wp_cache_set"),
            (K.OPEN_PARENTHESIS, "("),
            (K.VARIABLE, "$k"),
            (K.COMMA, ","),
            (K.VARIABLE, "$d"),
            (K.COMMA, ","),
            (K.STRING_LITERAL, "'posts'"),
            (K.CLOSE_PARENTHESIS, ")"),
            (K.SEMICOLON, ";"),
        ]
    )


def default_engine():
    return RuleEngine([DynamicCallsRule(), RestrictedCacheGroupRule()])


def test_violations_from_all_rules_are_position_ordered():
    result = default_engine().scan(mixed_stream(), path="mixed.php")

    assert [(violation.position, violation.rule) for violation in result.violations] == [
        (8, "Functions.DynamicCalls.DynamicCalls"),
        (12, "Compatibility.RestrictedCacheGroup.wp_memcached"),
    ]
    assert result.path == "mixed.php"
    assert result.exit_code() == 2
    assert not result.passed


def test_ties_follow_registration_order():
    stream = TokenStream.from_pieces([(K.VARIABLE, "$a"), (K.SEMICOLON, ";")])
    engine = RuleEngine([EveryTokenRule("second", {K.VARIABLE}), EveryTokenRule("first", {K.VARIABLE})])

    result = engine.scan(stream)

    assert [violation.rule for violation in result.violations] == ["second", "first"]


def test_scanning_is_deterministic_and_idempotent():
    engine = default_engine()
    stream = mixed_stream()

    first = engine.scan(stream)
    second = engine.scan(stream)

    assert first.to_dict() == second.to_dict()
    assert first.violations == second.violations


def test_rule_only_receives_tokens_of_declared_kinds():
    rule = EveryTokenRule("semicolons", {K.SEMICOLON})

    result = RuleEngine([rule]).scan(mixed_stream())

    assert [violation.position for violation in result.violations] == [5, 10, 20]


def test_rule_fault_is_isolated(caplog):
    failing = EveryTokenRule("flaky", {K.VARIABLE, K.SEMICOLON}, fail_at=7)
    steady = EveryTokenRule("steady", {K.VARIABLE})

    with caplog.at_level(logging.WARNING, logger="phpguard.engine"):
        result = RuleEngine([failing, steady]).scan(mixed_stream())

    flaky_positions = [v.position for v in result.violations if v.rule == "flaky"]
    steady_positions = [v.position for v in result.violations if v.rule == "steady"]
    assert flaky_positions == [0, 5, 10, 14, 16, 20]
    assert steady_positions == [0, 7, 14, 16]
    assert len(result.errors) == 1
    error = result.errors[0]
    assert (error.rule, error.position, error.message) == ("flaky", 7, "boom")
    assert "flaky failed on token 7" in caplog.text


def test_state_fault_skips_only_that_rule(caplog):
    class BrokenStateRule(EveryTokenRule):
        def new_state(self):
            raise RuntimeError("no state")

    steady = EveryTokenRule("steady", {K.VARIABLE})

    with caplog.at_level(logging.WARNING, logger="phpguard.engine"):
        result = RuleEngine([BrokenStateRule("broken", {K.VARIABLE}), steady]).scan(mixed_stream())

    assert [(v.rule, v.position) for v in result.violations] == [
        ("steady", 0),
        ("steady", 7),
        ("steady", 14),
        ("steady", 16),
    ]
    assert [(error.rule, error.position, error.message) for error in result.errors] == [("broken", 0, "no state")]
    assert "broken failed" in caplog.text


def test_fresh_state_per_scan():
    states = []

    class RecordingRule(EveryTokenRule):
        def new_state(self):
            state = super().new_state()
            states.append(state)
            return state

    engine = RuleEngine([RecordingRule("rec", {K.VARIABLE})])
    engine.scan(mixed_stream())
    engine.scan(mixed_stream())

    assert len(states) == 2
    assert states[0] is not states[1]
    assert states[0] == states[1] == [0, 7, 14, 16]


def test_cancellation_keeps_already_emitted_violations():
    calls = {"count": 0}

    def stop_after_ten():
        calls["count"] += 1
        return calls["count"] > 10

    result = default_engine().scan(mixed_stream(), should_stop=stop_after_ten)

    assert result.cancelled
    assert [violation.position for violation in result.violations] == [8]


def test_duplicate_rule_names_are_rejected():
    with pytest.raises(ConfigError):
        RuleEngine([DynamicCallsRule(), DynamicCallsRule()])


def test_scan_many_uses_independent_engines():
    binding_only = TokenStream.from_pieces(
        [(K.VARIABLE, "$fn"), (K.ASSIGNMENT, "="), (K.STRING_LITERAL, "'extract'"), (K.SEMICOLON, ";")]
    )
    call_only = TokenStream.from_pieces(
        [(K.VARIABLE, "$fn"), (K.OPEN_PARENTHESIS, "("), (K.CLOSE_PARENTHESIS, ")"), (K.SEMICOLON, ";")]
    )
    streams = [("a.php", mixed_stream()), ("b.php", binding_only), ("c.php", call_only)]

    results = scan_many(default_engine, streams, max_workers=3)

    assert [result.path for result in results] == ["a.php", "b.php", "c.php"]
    assert [len(result.violations) for result in results] == [2, 0, 0]
