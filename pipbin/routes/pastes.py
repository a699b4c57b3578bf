"""
Paste routes.
Serves the README at / and pastes at /{short_id} as HTML pages.
"""
import logging
from pathlib import Path

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, PlainTextResponse
from fastapi.templating import Jinja2Templates

from pipbin.errors import PipError, RenderFailure
from pipbin.render import HIGHLIGHT_CSS, RenderingGateway

router = APIRouter()
logger = logging.getLogger(__name__)

templates = Jinja2Templates(directory=str(Path(__file__).parent.parent / "templates"))


def _get_gateway(request: Request) -> RenderingGateway:
    return request.app.state.gateway


@router.get("/", response_class=HTMLResponse)
async def view_readme(request: Request):
    """View the bundled README."""
    return await _render_page(request, "/")


@router.get("/{short_id}", response_class=HTMLResponse)
async def view_paste(short_id: str, request: Request):
    """
    View a paste as HTML.

    Args:
        short_id: Public identifier of the paste
        request: HTTP request context

    Returns:
        HTML page with the paste, or a plain-text 500 response on any failure
    """
    return await _render_page(request, f"/{short_id}")


async def _render_page(request: Request, path: str):
    try:
        paste = await _get_gateway(request).render(path)
    except RenderFailure as e:
        return PlainTextResponse(str(e), status_code=500)
    except PipError as e:
        logger.warning(f"Could not load paste for {path}: {e}")
        return PlainTextResponse(f"Error getting paste: {e}", status_code=500)

    return templates.TemplateResponse(
        request,
        "paste.html",
        {"paste": paste, "highlight_css": HIGHLIGHT_CSS},
    )
