import pytest

from phpguard.engine import RuleEngine
from phpguard.errors import ConfigError
from phpguard.rules.dynamic_calls import RULE_ID, DynamicCallsRule
from phpguard.severity import Severity
from phpguard.tokens import TokenKind as K
from phpguard.tokens import TokenStream

WS = (K.WHITESPACE, " ")
NL = (K.WHITESPACE, "\n")
END = (K.SEMICOLON, ";")


def assign(variable, literal):
    return [(K.VARIABLE, variable), WS, (K.ASSIGNMENT, "="), WS, (K.STRING_LITERAL, literal), END, NL]


def call(variable):
    return [(K.VARIABLE, variable), (K.OPEN_PARENTHESIS, "("), (K.CLOSE_PARENTHESIS, ")"), END, NL]


def run_rule(*pieces, rule=None):
    stream = TokenStream.from_pieces([piece for group in pieces for piece in group])
    return RuleEngine([rule or DynamicCallsRule()]).scan(stream), stream


def test_call_through_bound_restricted_name_is_reported():
    result, stream = run_rule(assign("$a", "'func_num_args'"), call("$a"))

    assert len(result.violations) == 1
    violation = result.violations[0]
    assert stream[violation.position].kind is K.OPEN_PARENTHESIS
    assert violation.position == 8
    assert violation.rule == RULE_ID
    assert violation.severity is Severity.ERROR
    assert violation.message_args == ("func_num_args",)
    assert violation.message == "Dynamic calling is not recommended in the case of func_num_args."
    assert (violation.line, violation.column) == (2, 3)


def test_call_through_other_variable_is_ignored():
    result, _ = run_rule(assign("$a", "'extract'"), call("$b"))

    assert result.violations == []


def test_reassignment_replaces_previous_binding():
    rule = DynamicCallsRule(restricted_names=["bar"])
    result, _ = run_rule(assign("$a", "'foo'"), assign("$a", "'bar'"), call("$a"), rule=rule)

    assert [violation.message_args for violation in result.violations] == [("bar",)]


def test_reassignment_to_allowed_name_clears_violation():
    result, _ = run_rule(assign("$a", "'compact'"), assign("$a", "'strlen'"), call("$a"))

    assert result.violations == []


def test_call_without_any_assignment_is_ignored():
    result, _ = run_rule(call("$a"))

    assert result.violations == []
    assert result.errors == []


def test_double_quoted_literal_and_whitespace_before_parenthesis():
    result, _ = run_rule(
        assign("$fn", '"extract"'),
        [(K.VARIABLE, "$fn"), WS, WS, (K.OPEN_PARENTHESIS, "("), (K.VARIABLE, "$x"), (K.CLOSE_PARENTHESIS, ")"), END],
    )

    assert [violation.message_args for violation in result.violations] == [("extract",)]


def test_non_literal_right_hand_side_leaves_binding_unchanged():
    concatenation = [
        (K.VARIABLE, "$a"),
        WS,
        (K.ASSIGNMENT, "="),
        WS,
        (K.STRING_LITERAL, "'ex'"),
        WS,
        (K.OTHER, "."),
        WS,
        (K.STRING_LITERAL, "'tract'"),
        END,
        NL,
    ]
    function_result = [
        (K.VARIABLE, "$b"),
        WS,
        (K.ASSIGNMENT, "="),
        WS,
        (K.IDENTIFIER, "pick"),
        (K.OPEN_PARENTHESIS, "("),
        (K.STRING_LITERAL, "'assert'"),
        (K.CLOSE_PARENTHESIS, ")"),
        END,
        NL,
    ]

    result, _ = run_rule(concatenation, function_result, call("$a"), call("$b"))

    assert result.violations == []


def test_close_tag_ends_the_assignment():
    pieces = [
        ("T_VARIABLE", "$f"),
        ("T_WHITESPACE", " "),
        ("T_EQUAL", "="),
        ("T_WHITESPACE", " "),
        ("T_CONSTANT_ENCAPSED_STRING", "'extract'"),
        ("T_WHITESPACE", " "),
        ("T_CLOSE_TAG", "?>"),
        ("T_OPEN_TAG", "<?php "),
        ("T_VARIABLE", "$f"),
        ("T_OPEN_PARENTHESIS", "("),
        ("T_CLOSE_PARENTHESIS", ")"),
        ("T_SEMICOLON", ";"),
    ]

    result, stream = run_rule(pieces)

    assert [violation.position for violation in result.violations] == [9]
    assert stream[6].kind is K.CLOSE_TAG


def test_comparison_is_not_an_assignment():
    comparison = [(K.VARIABLE, "$a"), WS, (K.OTHER, "=="), WS, (K.STRING_LITERAL, "'assert'"), END, NL]

    result, _ = run_rule(comparison, call("$a"))

    assert result.violations == []


def test_variable_use_without_call_shape_is_ignored():
    echo = [(K.OTHER, "echo"), WS, (K.VARIABLE, "$a"), END, NL]

    result, _ = run_rule(assign("$a", "'assert'"), echo)

    assert result.violations == []


def test_assignment_at_end_of_stream_without_literal():
    result, _ = run_rule([(K.VARIABLE, "$a"), WS, (K.ASSIGNMENT, "=")])

    assert result.violations == []
    assert result.errors == []


def test_each_call_is_reported_once():
    result, _ = run_rule(assign("$a", "'parse_str'"), call("$a"), call("$a"))

    assert len(result.violations) == 2
    assert result.violations[0].position < result.violations[1].position


def test_bindings_do_not_leak_between_scans():
    engine = RuleEngine([DynamicCallsRule()])
    first = TokenStream.from_pieces(assign("$a", "'assert'"))
    second = TokenStream.from_pieces(call("$a"))

    engine.scan(first)
    result = engine.scan(second)

    assert result.violations == []


def test_custom_severity_is_used():
    rule = DynamicCallsRule(restricted_names=["assert"], severity=Severity.WARNING)
    result, _ = run_rule(assign("$a", "'assert'"), call("$a"), rule=rule)

    assert result.summary.warning == 1
    assert result.exit_code() == 1


@pytest.mark.parametrize("names", [[], "assert"])
def test_invalid_restricted_names_fail_fast(names):
    with pytest.raises(ConfigError):
        DynamicCallsRule(restricted_names=names)
