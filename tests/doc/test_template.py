"""Tests for the template formatting helpers."""

from __future__ import annotations

import ast

from jinja2 import Environment

from pkgdoc.doc.printer import DeclPrinter
from pkgdoc.doc.template import command_name, comment_html, decl_html, register_filters
from pkgdoc.models import Decl, TypeAnnotation


def _decl(source: str) -> Decl:
    return DeclPrinter().print_decl(ast.parse(source).body[0])


def test_comment_html_blocks() -> None:
    text = (
        "Widgets grow.\n"
        "Slowly.\n"
        "\n"
        "Usage\n"
        "\n"
        "Call grow:\n"
        "\n"
        "    w.grow()\n"
        "\n"
        "    w.grow()\n"
        "\n"
        "See <docs> & more."
    )

    assert str(comment_html(text)) == (
        "<p>\nWidgets grow.\nSlowly.\n</p>\n"
        '<h3 id="hdr-Usage">Usage</h3>\n'
        "<p>\nCall grow:\n</p>\n"
        "<pre>w.grow()\n\nw.grow()</pre>\n"
        "<p>\nSee &lt;docs&gt; &amp; more.\n</p>\n"
    )


def test_comment_html_doctest_is_preformatted() -> None:
    html = str(comment_html("Adds numbers.\n\n>>> add(1, 2)\n3"))

    assert html == "<p>\nAdds numbers.\n</p>\n<pre>&gt;&gt;&gt; add(1, 2)\n3</pre>\n"


def test_comment_html_empty() -> None:
    assert str(comment_html("")) == ""


def test_decl_html_links_unqualified_names() -> None:
    decl = _decl("def f(x: Widget, y: io.Reader) -> None: pass")

    assert str(decl_html(decl)) == (
        'def f(x: <a href="#Widget">Widget</a>, y: io.Reader) -&gt; None:\n    ...'
    )


def test_decl_html_custom_resolver() -> None:
    decl = _decl("def f(y: io.Reader) -> None: pass")

    html = decl_html(decl, link=lambda a: f"/pkg/{a.qualifier}#{a.name}")

    assert '<a href="/pkg/io#Reader">io.Reader</a>' in str(html)


def test_decl_html_handles_multibyte_text() -> None:
    decl = _decl("def f(a: 'é', b: Widget) -> None: pass")

    assert str(decl_html(decl)) == (
        'def f(a: &#39;é&#39;, b: <a href="#Widget">Widget</a>) -&gt; None:\n    ...'
    )


def test_decl_html_ignores_out_of_range_spans() -> None:
    decl = Decl(text="abc", annotations=(TypeAnnotation(1, 10, "", "Bogus"),))

    assert str(decl_html(decl)) == "abc"


def test_command_name() -> None:
    assert command_name("github.com/acme/widgets") == "widgets"
    assert command_name("github.com/acme/widgets/") == "widgets"
    assert command_name("widgets") == "widgets"


def test_filters_render_in_jinja() -> None:
    env = register_filters(Environment(autoescape=True))
    template = env.from_string(
        "{{ path|cmd_name }}\n{{ decl|decl }}\n{{ doc|comment }}"
    )

    rendered = template.render(
        path="example.com/widgets",
        decl=_decl("def grow(w: Widget) -> None: pass"),
        doc="Grows <w>.",
    )

    assert rendered.splitlines()[0] == "widgets"
    assert '<a href="#Widget">Widget</a>' in rendered
    assert "<p>\nGrows &lt;w&gt;.\n</p>" in rendered
