"""Built-in browser tools offered to the model.

Local tools answer from the cached page content held by ``BrowserSession``;
bridge tools are forwarded to the extension through ``ToolBridge``.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping
from urllib.parse import urlparse

from ..orchestration.tools.registry import ToolCatalog
from ..orchestration.tools.types import DispatchStrategy, ToolContext, ToolSpec
from .errors import BridgeUnavailableError, InvalidArgumentsError, NoPageContentError, ToolExecutionError

LOGGER = logging.getLogger(__name__)

_NO_PARAMETERS: Mapping[str, Any] = {"type": "object", "properties": {}, "required": []}


def _string_parameter(name: str, description: str) -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {name: {"type": "string", "description": description}},
        "required": [name],
    }


# ---------------------------------------------------------------------------
# Local handlers
# ---------------------------------------------------------------------------
def get_page_text(arguments: Mapping[str, Any], context: ToolContext) -> dict[str, Any]:
    content = context.session.page_content if context.session is not None else None
    if content is None:
        raise NoPageContentError()

    text = content.content_for_llm
    if not text.strip():
        raise ToolExecutionError(message="Page text is empty - content script may have failed", tool_name="getPageText")

    return {
        "url": content.url,
        "title": content.title,
        "text": text,
        "format": content.content_format,
        "description": content.description or "",
        "textLength": len(text),
    }


def search_on_page(arguments: Mapping[str, Any], context: ToolContext) -> dict[str, Any]:
    query = arguments.get("query")
    if not isinstance(query, str) or not query:
        raise InvalidArgumentsError(message="Invalid arguments: query required")

    content = context.session.page_content if context.session is not None else None
    if content is None:
        raise NoPageContentError()

    matches = content.text.lower().count(query.lower())
    return {
        "query": query,
        "totalMatches": matches,
        "note": "Searching in extracted text. Full page search requires reload.",
    }


async def open_in_new_tab(arguments: Mapping[str, Any], context: ToolContext) -> dict[str, Any]:
    url = arguments.get("url")
    if not isinstance(url, str) or not _is_valid_url(url):
        raise InvalidArgumentsError(message="Invalid arguments: valid url required")
    if context.bridge is None:
        raise BridgeUnavailableError(message="Browser extension is not connected")

    await context.bridge.request_open_tab(url)
    LOGGER.info("Requested new tab for %s", url)
    return {"success": True, "url": url, "message": "Opening tab..."}


def _is_valid_url(value: str) -> bool:
    parsed = urlparse(value.strip())
    return bool(parsed.scheme) and bool(parsed.netloc or parsed.path)


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------
GET_PAGE_TEXT = ToolSpec(
    name="getPageText",
    description="Extract all text content from the current web page",
    parameters=_NO_PARAMETERS,
    strategy=DispatchStrategy.LOCAL,
    handler=get_page_text,
)

GET_TABS = ToolSpec(
    name="getTabs",
    description=(
        "Get a list of all open browser tabs in the current window, including their titles, "
        "URLs, and which one is currently active"
    ),
    parameters=_NO_PARAMETERS,
)

GET_PAGE_STRUCTURE = ToolSpec(
    name="getPageStructure",
    description="Get the DOM structure of the current page including headings, sections, and main content areas",
    parameters=_NO_PARAMETERS,
)

GET_IMAGE = ToolSpec(
    name="getImage",
    description="Get a specific image from the page by CSS selector",
    parameters=_string_parameter("selector", "CSS selector for the image element (e.g., 'img.logo', '#hero-image')"),
)

SEARCH_ON_PAGE = ToolSpec(
    name="searchOnPage",
    description="Search for text on the current page and return matching contexts",
    parameters=_string_parameter("query", "The text to search for on the page"),
    strategy=DispatchStrategy.LOCAL,
    handler=search_on_page,
)

GET_LINKS = ToolSpec(
    name="getLinks",
    description="Extract all links from the current page with their text and URLs",
    parameters=_NO_PARAMETERS,
)

OPEN_IN_NEW_TAB = ToolSpec(
    name="openInNewTab",
    description="Open a URL in a new browser tab",
    parameters=_string_parameter("url", "The URL to open in a new tab"),
    strategy=DispatchStrategy.LOCAL,
    handler=open_in_new_tab,
)

GET_FULL_PAGE_SCREENSHOT = ToolSpec(
    name="getFullPageScreenshot",
    description="Capture a screenshot of the entire current page",
    parameters=_NO_PARAMETERS,
)

DEFAULT_TOOLS: tuple[ToolSpec, ...] = (
    GET_PAGE_TEXT,
    GET_TABS,
    GET_PAGE_STRUCTURE,
    GET_IMAGE,
    SEARCH_ON_PAGE,
    GET_LINKS,
    OPEN_IN_NEW_TAB,
    GET_FULL_PAGE_SCREENSHOT,
)


def build_default_catalog() -> ToolCatalog:
    """Return a fresh catalog holding the built-in browser tools."""
    return ToolCatalog(DEFAULT_TOOLS)


__all__ = [
    "DEFAULT_TOOLS",
    "build_default_catalog",
    "get_page_text",
    "open_in_new_tab",
    "search_on_page",
]
