import html
from functools import lru_cache
from pathlib import Path

from fastapi.responses import HTMLResponse, RedirectResponse

from edge_router.vars import PUBLIC_URL

NOT_FOUND_PAGE = Path(__file__).parent / "not_found.html"


@lru_cache(maxsize=1)
def _not_found_template() -> str:
    return NOT_FOUND_PAGE.read_text(encoding="utf-8")


def root_redirect(request_origin: str, default_route: str) -> RedirectResponse:
    """302 to the default route on the public origin (or the inbound one)."""
    origin = PUBLIC_URL or request_origin
    return RedirectResponse(url=f"{origin}{default_route}", status_code=302)


def not_found(default_route: str) -> HTMLResponse:
    content = _not_found_template().replace(
        "{{default_route}}", html.escape(default_route, quote=True)
    )
    return HTMLResponse(content=content, status_code=404, media_type="text/html")
