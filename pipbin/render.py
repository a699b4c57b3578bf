"""
Rendering gateway: turns a request path into the display model for the paste page.

Markdown and TeX pastes are converted to HTML. Raw HTML in the source is
allowed through the converter, so every converted fragment is sanitized
with nh3 before it leaves this module. Everything else is shown as literal
text and escaped by the template.
"""
import logging
from pathlib import Path
from typing import Optional

import markdown
import nh3
from pygments.formatters import HtmlFormatter
from pymdownx import emoji

from pipbin import shortid
from pipbin.database import PasteDatabase
from pipbin.errors import RenderFailure
from pipbin.models import DisplayModel

logger = logging.getLogger(__name__)

README_PATH = Path(__file__).parent / "templates" / "README.md"
README_NAME = "README.md"

RENDERED_LANGUAGES = {"markdown", "tex"}

HIGHLIGHT_CSS = HtmlFormatter().get_style_defs(".highlight")

MARKDOWN_EXTENSIONS = [
    "tables",
    "toc",
    "smarty",
    "pymdownx.tilde",
    "pymdownx.tasklist",
    "pymdownx.magiclink",
    "pymdownx.emoji",
    "pymdownx.highlight",
    "pymdownx.superfences",
]

MARKDOWN_EXTENSION_CONFIGS = {
    "pymdownx.emoji": {"emoji_generator": emoji.to_alt},
    "pymdownx.highlight": {"use_pygments": True, "css_class": "highlight"},
    "pymdownx.tilde": {"subscript": False},
}

ALLOWED_TAGS = set(nh3.ALLOWED_TAGS) | {"input"}
ALLOWED_ATTRIBUTES = {tag: set(attrs) for tag, attrs in nh3.ALLOWED_ATTRIBUTES.items()}
ALLOWED_ATTRIBUTES["*"] = ALLOWED_ATTRIBUTES.get("*", set()) | {"class", "id"}
ALLOWED_ATTRIBUTES["input"] = {"type", "checked", "disabled"}


def sanitize(html: str) -> str:
    return nh3.clean(html, tags=ALLOWED_TAGS, attributes=ALLOWED_ATTRIBUTES)


def render_markdown(text: str) -> str:
    """
    Convert markdown to a sanitized HTML fragment wrapped in a ``markdown`` div.

    Raises:
        RenderFailure: If conversion fails
    """
    try:
        unsafe_html = markdown.markdown(
            text,
            extensions=MARKDOWN_EXTENSIONS,
            extension_configs=MARKDOWN_EXTENSION_CONFIGS,
        )
    except Exception as e:
        logger.error(f"Error converting markdown: {type(e).__name__}: {e}")
        raise RenderFailure(f"Error converting markdown: {e}") from e

    return f'<div class="markdown">{sanitize(unsafe_html)}</div>'


def is_rendered_language(language: str) -> bool:
    return language.lower() in RENDERED_LANGUAGES


class RenderingGateway:
    """Loads pastes and decides how each one is displayed."""

    def __init__(self, db: PasteDatabase, readme_path: Optional[Path] = None):
        self.db = db
        self.readme_path = readme_path or README_PATH

    async def render(self, path: str) -> DisplayModel:
        """
        Build the display model for ``path``.

        ``/`` shows the bundled README; any other path is read as ``/{shortId}``.

        Raises:
            PasteNotFound: If no paste has the decoded id
            StorageFailure: If the lookup fails
            RenderFailure: If markdown conversion or reading the README fails
        """
        code = path.strip("/").rsplit("/", 1)[-1]
        if not code:
            return self.render_readme()

        paste = await self.db.get_paste(shortid.decode(code))
        model = DisplayModel(name=shortid.encode(paste.id), language=paste.language)

        if is_rendered_language(paste.language):
            model.html = render_markdown(paste.content)
            model.rendered = True
        else:
            model.content = paste.content
        return model

    def render_readme(self) -> DisplayModel:
        try:
            text = self.readme_path.read_text(encoding="utf-8")
        except OSError as e:
            raise RenderFailure(f"Error reading file: {e}", message=f"Error reading file: {e}") from e

        return DisplayModel(
            name=README_NAME,
            language="markdown",
            html=render_markdown(text),
            rendered=True,
        )
