"""Tests for the directive rewrite table.

Covers the compiled form each rule produces and the rule order the table
depends on.
"""

from __future__ import annotations

import pytest

from sickle.compiler.directives import (
    FOREACH_CLOSE,
    RULE_NAMES,
    RULES,
    parse_loop,
    rewrite,
)


class TestRuleOrder:
    """The table's order is part of its behaviour."""

    def test_rule_names(self) -> None:
        assert RULE_NAMES == (
            "comments",
            "echo-escape",
            "echo-default",
            "echo",
            "raw-echo",
            "mutators",
            "assignment",
            "forelse",
            "conditionals",
            "switch",
            "foreach",
            "control",
            "php",
        )

    def test_comments_before_echoes(self) -> None:
        assert RULE_NAMES.index("comments") < RULE_NAMES.index("echo")
        assert rewrite("a{{-- {{ secret }} --}}b") == "ab"

    def test_forelse_before_conditionals(self) -> None:
        assert RULE_NAMES.index("forelse") < RULE_NAMES.index("conditionals")
        compiled = rewrite(
            "@forelse(xs as x)<i>1</i>@empty <i>2</i>@endforelse @empty(y)<i>3</i>@endempty"
        )
        assert "<?py if _empty(lambda: (y)): ?><i>3</i><?py endif ?>" in compiled
        assert "<?py else: ?> <i>2</i>" in compiled

    def test_escape_before_echo(self) -> None:
        assert RULE_NAMES.index("echo-escape") < RULE_NAMES.index("echo")

    def test_every_rule_has_apply(self) -> None:
        assert all(callable(rule.apply) for rule in RULES)


class TestEchoRules:
    """{{ }}, {!! !!} and friends."""

    def test_escaped_echo(self) -> None:
        assert rewrite("<p>{{ user.name }}</p>") == "<p><?= _e(user.name) ?></p>"

    def test_raw_echo(self) -> None:
        assert rewrite("{!! body !!}") == "<?= body ?>"

    def test_echo_with_default(self) -> None:
        assert rewrite("{{ title or 'Untitled' }}") == (
            "<?= _e(_value_or(lambda: (title), 'Untitled')) ?>"
        )

    def test_or_inside_call_is_plain_echo(self) -> None:
        assert rewrite("{{ pick(a or b) }}") == "<?= _e(pick(a or b)) ?>"

    def test_echo_escape(self) -> None:
        compiled = rewrite("@{{ name }}")
        assert compiled == "<?= '\\x7b\\x7b' ?> name }}"

    def test_multiline_echo(self) -> None:
        assert rewrite("{{\n  value\n}}") == "<?= _e(value) ?>"


class TestMutators:
    @pytest.mark.parametrize(
        ("source", "expected"),
        [
            ("@json(data)", "<?= _json(data) ?>"),
            ("@json(data, indent=2)", "<?= _json(data, indent=2) ?>"),
            ("@lower(name)", "<?= _e(_lower(name)) ?>"),
            ("@upper(name)", "<?= _e(_upper(name)) ?>"),
            ("@ucfirst(name)", "<?= _e(_ucfirst(name)) ?>"),
            ("@ucwords(name)", "<?= _e(_ucwords(name)) ?>"),
            ("@format('%d items', n)", "<?= _e(_sprintf('%d items', n)) ?>"),
            ("@sprintf('%s', n)", "<?= _e(_sprintf('%s', n)) ?>"),
            ("@wrap(text, 20, '<br>')", "<?= _e(_wordwrap(text, 20, '<br>')) ?>"),
        ],
    )
    def test_mutator(self, source: str, expected: str) -> None:
        assert rewrite(source) == expected


class TestAssignment:
    def test_set(self) -> None:
        assert rewrite("@set(total, a + b)") == "<?py total = a + b ?>"

    def test_set_quoted_name(self) -> None:
        assert rewrite("@set('total', f(1, 2))") == "<?py total = f(1, 2) ?>"

    def test_unset(self) -> None:
        assert rewrite("@unset(a, 'b')") == "<?py del a, b ?>"

    def test_set_without_value_is_literal(self) -> None:
        assert rewrite("@set(total)") == "@set(total)"


class TestConditionals:
    @pytest.mark.parametrize(
        ("source", "expected"),
        [
            ("@isset(a, b.c)<i>x</i>@endisset", "<?py if _isset(lambda: (a), lambda: (b.c)): ?><i>x</i><?py endif ?>"),
            ("@has(items)<i>x</i>@endhas", "<?py if _has(lambda: (items)): ?><i>x</i><?py endif ?>"),
            ("@unless(ok)<i>x</i>@endunless", "<?py if not (ok): ?><i>x</i><?py endif ?>"),
            ("@empty(items)<i>x</i>@endempty", "<?py if _empty(lambda: (items)): ?><i>x</i><?py endif ?>"),
        ],
    )
    def test_conditional(self, source: str, expected: str) -> None:
        assert rewrite(source) == expected

    def test_if_family(self) -> None:
        assert rewrite("@if(a)<i>1</i>@elseif(b)<i>2</i>@else <i>3</i>@endif") == (
            "<?py if (a): ?><i>1</i><?py elif (b): ?><i>2</i><?py else: ?> <i>3</i><?py endif ?>"
        )

    def test_nested_parentheses(self) -> None:
        assert rewrite("@if(len(items) > max(1, (limit)))<i>x</i>@endif") == (
            "<?py if (len(items) > max(1, (limit))): ?><i>x</i><?py endif ?>"
        )

    def test_unbalanced_condition_left_literal(self) -> None:
        assert rewrite("@if(a(b)x") == "@if(a(b)x"

    def test_multiline_condition(self) -> None:
        assert rewrite("@if(a and\n   b)<i>x</i>@endif") == (
            "<?py if (a and\n   b): ?><i>x</i><?py endif ?>"
        )

    def test_adjacent_closers(self) -> None:
        compiled = rewrite("@foreach(xs as x)@if(x)<i>y</i>@endif@endforeach")
        assert compiled.endswith("<i>y</i><?py endif ?>" + FOREACH_CLOSE)
        assert "@" not in compiled

    def test_else_directly_followed_by_if(self) -> None:
        assert rewrite("@if(a)<b>1</b>@else@if(b)<b>2</b>@endif@endif") == (
            "<?py if (a): ?><b>1</b><?py else: ?><?py if (b): ?><b>2</b><?py endif ?><?py endif ?>"
        )

    def test_address_stays_literal(self) -> None:
        assert rewrite("<p>team@endif.org</p>") == "<p>team@endif.org</p>"


class TestLoops:
    def test_foreach(self) -> None:
        assert rewrite("@foreach(users as user)<i>x</i>@endforeach") == (
            "<?py with loop.iterate(users) as _loop_items: ?>"
            "<?py for user in _loop_items: ?><i>x</i>" + FOREACH_CLOSE
        )

    def test_forelse_with_empty(self) -> None:
        assert rewrite("@forelse(xs as x)<i>a</i>@empty <i>b</i>@endforelse") == (
            "<?py _forelse_items = _seq(lambda: (xs)) ?><?py if _forelse_items: ?>"
            "<?py with loop.iterate(_forelse_items) as _loop_items: ?>"
            "<?py for x in _loop_items: ?><i>a</i>"
            "<?py endfor ?><?py endwith ?><?py else: ?> <i>b</i><?py endif ?>"
        )

    def test_forelse_without_empty(self) -> None:
        compiled = rewrite("@forelse(xs as x)<i>a</i>@endforelse")
        assert compiled.endswith("<i>a</i><?py endfor ?><?py endwith ?><?py endif ?>")

    def test_nested_forelse_pairs_correctly(self) -> None:
        compiled = rewrite(
            "@forelse(a as x)@forelse(x as y)<i>1</i>@empty <i>2</i>@endforelse @empty <i>3</i>@endforelse"
        )
        assert compiled.count("<?py else: ?>") == 2
        assert "@" not in compiled

    def test_for_and_while(self) -> None:
        assert rewrite("@for(i in range(3))<i>x</i>@endfor") == (
            "<?py for i in range(3): ?><i>x</i><?py endfor ?>"
        )
        assert rewrite("@while(n)<i>x</i>@endwhile") == "<?py while (n): ?><i>x</i><?py endwhile ?>"

    @pytest.mark.parametrize(
        ("args", "expected"),
        [
            ("users as user", ("users", "user")),
            ("user in users", ("users", "user")),
            ("pairs as key, value", ("pairs", "key, value")),
            ("prices as name => price", ("(prices).items()", "name, price")),
            ("users", None),
        ],
    )
    def test_parse_loop(self, args: str, expected: tuple[str, str] | None) -> None:
        assert parse_loop(args) == expected


class TestSwitch:
    def test_switch_family(self) -> None:
        assert rewrite("@switch(x)@case(1)<i>a</i>@break @default <i>b</i>@endswitch") == (
            "<?py switch (x): ?><?py case (1): ?><i>a</i><?py break ?> <?py default: ?> <i>b</i>"
            "<?py endswitch ?>"
        )

    @pytest.mark.parametrize(
        ("source", "expected"),
        [
            ("@break", "<?py break ?>"),
            ("@break(2)", "<?py break 2 ?>"),
            ("@break(x > 3)", "<?py if (x > 3): break ?>"),
            ("@continue", "<?py continue ?>"),
            ("@continue(x)", "<?py if (x): continue ?>"),
        ],
    )
    def test_jumps(self, source: str, expected: str) -> None:
        assert rewrite(source) == expected


class TestRawCode:
    def test_php_block(self) -> None:
        assert rewrite("@php\nx = 1\n@endphp") == "<?py\nx = 1\n?>"

    def test_php_statement(self) -> None:
        assert rewrite("@php(x = 1)") == "<?py x = 1 ?>"


class TestLiteralText:
    def test_email_addresses_untouched(self) -> None:
        assert rewrite("mail me@if.example") == "mail me@if.example"

    def test_unknown_directives_untouched(self) -> None:
        assert rewrite("@custom(x)") == "@custom(x)"
