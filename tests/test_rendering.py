"""End-to-end tests: template text in, output out."""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from sickle import Environment, Markup
from sickle.environment.exceptions import TemplateRuntimeError

from .conftest import assert_template_equal


class TestEchoes:
    def test_escaped(self, env: Environment) -> None:
        assert env.render_string("Hello {{ name }}!", {"name": "<b>"}) == "Hello &lt;b&gt;!"

    def test_quotes_escaped(self, env: Environment) -> None:
        assert env.render_string("{{ q }}", {"q": "it's \"x\""}) == "it&#39;s &quot;x&quot;"

    def test_raw(self, env: Environment) -> None:
        assert env.render_string("{!! html !!}", {"html": "<b>hi</b>"}) == "<b>hi</b>"

    def test_markup_is_not_escaped(self, env: Environment) -> None:
        assert env.render_string("{{ html }}", {"html": Markup("<b>hi</b>")}) == "<b>hi</b>"

    def test_data_cannot_replace_escaping(self, env: Environment) -> None:
        data = {"_e": lambda value: "HIJACK", "v": "<"}
        assert env.render_string("{{ v }}", data) == "&lt;"

    def test_none_renders_nothing(self, env: Environment) -> None:
        assert env.render_string("[{{ x }}]", {"x": None}) == "[]"

    @pytest.mark.parametrize(
        ("data", "expected"),
        [({}, "Untitled"), ({"title": None}, "Untitled"), ({"title": "Home"}, "Home")],
    )
    def test_default(self, env: Environment, data: dict, expected: str) -> None:
        assert env.render_string("{{ title or 'Untitled' }}", data) == expected

    def test_default_on_missing_attribute(self, env: Environment) -> None:
        data = {"user": SimpleNamespace()}
        assert env.render_string("{{ user.name or 'guest' }}", data) == "guest"

    def test_comment_removed(self, env: Environment) -> None:
        assert env.render_string("a{{-- {{ secret }} --}}b") == "ab"

    def test_escaped_echo_prints_literally(self, env: Environment) -> None:
        assert env.render_string("@{{ name }}") == "{{ name }}"


class TestConditionals:
    def test_if_elseif_else(self, env: Environment) -> None:
        source = "@if(n > 10)<b>big</b>@elseif(n > 5)<b>medium</b>@else <b>small</b>@endif"
        assert env.render_string(source, {"n": 20}) == "<b>big</b>"
        assert env.render_string(source, {"n": 7}) == "<b>medium</b>"
        assert env.render_string(source, {"n": 1}) == " <b>small</b>"

    @pytest.mark.parametrize(
        ("a", "b", "expected"),
        [(1, 1, "<b>both</b>"), (1, 0, "<b>one</b>"), (0, 0, "<b>none</b>")],
    )
    def test_condition_spanning_lines(
        self, env: Environment, a: int, b: int, expected: str
    ) -> None:
        source = "@if(a and\n   b)<b>both</b>@elseif(a or\n   b)<b>one</b>@else<b>none</b>@endif"
        assert env.render_string(source, {"a": a, "b": b}) == expected

    def test_nested_blocks_closed_back_to_back(self, env: Environment) -> None:
        source = "@foreach(xs as x)@if(x)<i>{{ x }}</i>@endif@endforeach"
        assert env.render_string(source, {"xs": [1, 0, 2]}) == "<i>1</i><i>2</i>"

    def test_unless(self, env: Environment) -> None:
        source = "@unless(admin)<p>denied</p>@endunless"
        assert env.render_string(source, {"admin": False}) == "<p>denied</p>"
        assert env.render_string(source, {"admin": True}) == ""

    def test_isset_tolerates_missing_attribute(self, env: Environment) -> None:
        source = "@isset(user.email)<a>{{ user.email }}</a>@endisset"
        assert env.render_string(source, {"user": SimpleNamespace()}) == ""
        user = SimpleNamespace(email="a@b.c")
        assert env.render_string(source, {"user": user}) == "<a>a@b.c</a>"

    def test_isset_multiple(self, env: Environment) -> None:
        source = "@isset(a, b)<i>both</i>@endisset"
        assert env.render_string(source, {"a": 1, "b": 0}) == "<i>both</i>"
        assert env.render_string(source, {"a": 1, "b": None}) == ""
        assert env.render_string(source, {"a": 1}) == ""

    @pytest.mark.parametrize(
        ("data", "expected"),
        [({}, "<i>none</i>"), ({"items": []}, "<i>none</i>"), ({"items": [1]}, "")],
    )
    def test_empty(self, env: Environment, data: dict, expected: str) -> None:
        assert env.render_string("@empty(items)<i>none</i>@endempty", data) == expected

    def test_has(self, env: Environment) -> None:
        source = "@has(tags)<i>tagged</i>@endhas"
        assert env.render_string(source, {"tags": ["x"]}) == "<i>tagged</i>"
        assert env.render_string(source, {"tags": []}) == ""
        assert env.render_string(source, {}) == ""


class TestLoops:
    def test_foreach_metadata(self, env: Environment) -> None:
        source = (
            "@foreach(items as item){{ loop.iteration }}/{{ loop.count }}:{{ item }}"
            "@if(loop.last).@else,@endif\n@endforeach"
        )
        assert env.render_string(source, {"items": ["a", "b"]}) == "1/2:a,2/2:b."

    def test_first_and_remaining(self, env: Environment) -> None:
        source = "@foreach(items as i)@if(loop.first)<b>{{ i }}</b>@endif {{ loop.remaining }}\n@endforeach"
        assert env.render_string(source, {"items": "xyz"}) == "<b>x</b> 2\n 1\n 0\n"

    def test_nested_depth(self, env: Environment) -> None:
        source = (
            "@foreach(rows as row)\n"
            "@foreach(row as cell){{ loop.depth }}\n@endforeach\n"
            "{{ loop.depth }}\n"
            "@endforeach\n"
        )
        assert env.render_string(source, {"rows": [[1], [2, 3]]}) == "2\n1\n2\n2\n1\n"

    def test_foreach_over_mapping(self, env: Environment) -> None:
        source = "@foreach(prices as name => price){{ name }}={{ price }};@endforeach"
        assert env.render_string(source, {"prices": {"a": 1, "b": 2}}) == "a=1;b=2;"

    def test_foreach_in_form(self, env: Environment) -> None:
        assert env.render_string("@foreach(x in xs){{ x }}@endforeach", {"xs": [1, 2]}) == "12"

    def test_forelse(self, env: Environment) -> None:
        source = "@forelse(items as i){{ i }}\n@empty\nnone\n@endforelse"
        assert env.render_string(source, {"items": [1, 2]}) == "1\n2\n"
        assert env.render_string(source, {"items": []}) == "none\n"

    def test_forelse_accepts_generator(self, env: Environment) -> None:
        source = "@forelse(range(n) as i){{ i }}@empty\nnone\n@endforelse"
        assert env.render_string(source, {"n": 3}) == "012"

    def test_forelse_over_exhausted_generator(self, env: Environment) -> None:
        source = "@forelse(items as i){{ i }}@empty<i>none</i>@endforelse"
        assert env.render_string(source, {"items": (i for i in [])}) == "<i>none</i>"
        assert env.render_string(source, {"items": (i for i in "ab")}) == "ab"

    def test_forelse_over_missing_name(self, env: Environment) -> None:
        source = "@forelse(items as i){{ i }}@empty<i>none</i>@endforelse"
        assert env.render_string(source, {}) == "<i>none</i>"

    def test_break_and_continue_conditions(self, env: Environment) -> None:
        source = "@foreach(items as i)@continue(i == 2)@break(i == 4){{ i }}@endforeach"
        assert env.render_string(source, {"items": [1, 2, 3, 4, 5]}) == "13"

    def test_break_out_of_nested_loops(self, env: Environment) -> None:
        source = (
            "@foreach(rows as row)\n"
            "@foreach(row as cell)\n"
            "@break(cell < 0)\n"
            "@if(cell == 0)\n@break(2)\n@endif\n"
            "{{ cell }}\n"
            "@endforeach\n"
            "@endforeach\n"
        )
        rows = [[1, -1, 9], [2, 0, 9], [3]]
        assert env.render_string(source, {"rows": rows}) == "1\n2\n"

    def test_for_and_while(self, env: Environment) -> None:
        assert env.render_string("@for(i in range(3)){{ i }}@endfor") == "012"
        source = "@set(n, 3)@while(n)@set(n, n - 1){{ n }}@endwhile"
        assert env.render_string(source) == "210"

    def test_loop_outside_loop_is_error(self, env: Environment) -> None:
        with pytest.raises(TemplateRuntimeError, match="no active loop"):
            env.render_string("{{ loop.index }}")


class TestSwitch:
    SOURCE = (
        "@switch(kind)\n"
        "@case('a')\nA\n@break\n"
        "@case('b')\n"
        "@case('c')\nB or C\n@break\n"
        "@default\nOther\n"
        "@endswitch\n"
    )

    @pytest.mark.parametrize(
        ("kind", "expected"),
        [("a", "A\n"), ("b", "B or C\n"), ("c", "B or C\n"), ("z", "Other\n")],
    )
    def test_switch(self, env: Environment, kind: str, expected: str) -> None:
        assert env.render_string(self.SOURCE, {"kind": kind}) == expected


class TestAssignmentAndCode:
    def test_set(self, env: Environment) -> None:
        source = "@set('greeting', 'Hi ' + name){{ greeting }}"
        assert env.render_string(source, {"name": "Bo"}) == "Hi Bo"

    def test_unset(self, env: Environment) -> None:
        source = "@set(x, 1)@unset(x)@isset(x)<b>set</b>@endisset"
        assert env.render_string(source) == ""

    def test_php_block(self, env: Environment) -> None:
        source = "@php\ntotal = sum(items)\n@endphp{{ total }}"
        assert env.render_string(source, {"items": [1, 2, 3]}) == "6"

    def test_php_multiline_block(self, env: Environment) -> None:
        source = (
            "@php\n"
            "    total = 0\n"
            "    for n in items:\n"
            "        total += n * 2\n"
            "@endphp{{ total }}"
        )
        assert env.render_string(source, {"items": [1, 2]}) == "6"

    def test_php_statement(self, env: Environment) -> None:
        assert env.render_string("@php(x = 2 ** 5){{ x }}") == "32"


class TestMutators:
    @pytest.mark.parametrize(
        ("source", "expected"),
        [
            ("@upper(name)", "ADA &amp; CO"),
            ("@lower(name)", "ada &amp; co"),
            ("@ucfirst('hELLO wORLD')", "Hello world"),
            ("@ucwords('hello big world')", "Hello Big World"),
            ("@format('%d items', 3)", "3 items"),
            ("@sprintf('%s-%s', 'a', 'b')", "a-b"),
            ("@wrap('aaa bbb ccc', 7)", "aaa bbb\nccc"),
            ("@json({'a': [1, 2], 'b': None})", '{"a": [1, 2], "b": null}'),
        ],
    )
    def test_mutator(self, env: Environment, source: str, expected: str) -> None:
        assert env.render_string(source, {"name": "Ada & Co"}) == expected


class TestUserDirectives:
    def test_string_handler(self, env: Environment) -> None:
        env.add_directive(r"@hr\b", "<hr>")
        assert env.render_string("a @hr b") == "a <hr> b"

    def test_backreferences(self, env: Environment) -> None:
        env.add_directive(r"@money\((.+?)\)", r"<?= _sprintf('$%.2f', \1) ?>")
        assert env.render_string("@money(price)", {"price": 3}) == "$3.00"

    def test_callable_handler(self, env: Environment) -> None:
        env.add_directive(r"@shout\((\w+)\)", lambda match: f"<?= _upper({match[1]}) ?>!")
        assert env.render_string("@shout(word)", {"word": "hey"}) == "HEY!"

    def test_applied_after_builtin_rules(self, env: Environment) -> None:
        # Built-in echoes have already become tags when user directives run.
        env.add_directive(r"<\?= _e\((\w+)\) \?>", r"[\1]")
        assert env.render_string("{{ x }}") == "[x]"

    def test_registration_order(self, env: Environment) -> None:
        env.add_directive("@a", "@b")
        env.add_directive("@b", "c")
        assert env.render_string("@a") == "c"


class TestDocument:
    def test_full_page(self, env: Environment) -> None:
        source = """
        <ul>
        @forelse(users as user)
            @if(loop.first)<li class="first">@else<li>@endif{{ user.name }}</li>
        @empty
            <li>No users</li>
        @endforelse
        </ul>
        """
        users = [SimpleNamespace(name="Ann"), SimpleNamespace(name="<Bob>")]
        assert_template_equal(
            env.render_string(source, {"users": users}),
            '<ul> <li class="first">Ann</li> <li>&lt;Bob&gt;</li> </ul>',
        )
        assert_template_equal(
            env.render_string(source, {"users": []}), "<ul> <li>No users</li> </ul>"
        )

    def test_runtime_error(self, env: Environment) -> None:
        with pytest.raises(TemplateRuntimeError, match="ZeroDivisionError"):
            env.render_string("{{ 1 / 0 }}")
