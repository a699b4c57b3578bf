import asyncio

import pytest

from pipbin import shortid
from pipbin.errors import PasteNotFound, RenderFailure
from pipbin.render import RenderingGateway, render_markdown


def _store_and_render(db, content, language):
    async def scenario():
        paste = await db.create_paste(content, language)
        return paste, await RenderingGateway(db).render(f"/{shortid.encode(paste.id)}")

    return asyncio.run(scenario())


def test_root_renders_the_bundled_readme(db):
    model = asyncio.run(RenderingGateway(db).render("/"))
    assert model.name == "README.md"
    assert model.language == "markdown"
    assert model.rendered
    assert model.html.startswith('<div class="markdown">')


def test_missing_readme_is_a_render_failure(db, tmp_path):
    gateway = RenderingGateway(db, readme_path=tmp_path / "README.md")
    with pytest.raises(RenderFailure):
        asyncio.run(gateway.render("/"))


def test_markdown_paste_is_rendered_and_wrapped(db):
    paste, model = _store_and_render(db, "# Hello World\n\nsome *text*", "Markdown")

    assert model.rendered
    assert model.name == shortid.encode(paste.id)
    assert model.language == "Markdown"
    assert model.html.startswith('<div class="markdown">')
    assert model.html.endswith("</div>")
    assert 'id="hello-world"' in model.html
    assert "<em>text</em>" in model.html
    assert model.content == ""


def test_tex_paste_is_rendered(db):
    _, model = _store_and_render(db, "plain words", "TeX")
    assert model.rendered


def test_javascript_paste_is_literal(db):
    paste, model = _store_and_render(db, "console.log('hi')", "JavaScript")
    assert not model.rendered
    assert model.content == "console.log('hi')"
    assert model.html == ""


def test_markup_in_plain_pastes_is_left_uninterpreted(db):
    _, model = _store_and_render(db, "<b>not bold</b>", "HTML")
    assert not model.rendered
    assert model.content == "<b>not bold</b>"


def test_unknown_and_invalid_codes_are_not_found(db):
    with pytest.raises(PasteNotFound):
        asyncio.run(RenderingGateway(db).render("/zz"))
    with pytest.raises(PasteNotFound):
        asyncio.run(RenderingGateway(db).render("/not-a-code"))


def test_raw_html_is_sanitized():
    html = render_markdown(
        "# title\n\n"
        "<script>alert('x')</script>\n\n"
        '<img src="x.png" onerror="alert(1)">\n\n'
        "[click](javascript:alert(1))\n\n"
        "<b>kept</b>\n"
    )
    assert "<script" not in html
    assert "onerror" not in html
    assert "javascript:" not in html
    assert "<b>kept</b>" in html


def test_markdown_extensions():
    html = render_markdown(
        "| a | b |\n|---|---|\n| 1 | 2 |\n\n"
        "~~gone~~\n\n"
        "- [x] done\n- [ ] todo\n\n"
        "see https://example.com\n\n"
        "```python\nprint('hi')\n```\n"
    )
    assert "<table>" in html
    assert "<del>gone</del>" in html
    assert "checkbox" in html
    assert 'href="https://example.com"' in html
    assert "highlight" in html
