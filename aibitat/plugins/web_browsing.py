"""Web search and page reading for agents listing the ``web-browsing`` function."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Optional

import httpx
from bs4 import BeautifulSoup

from aibitat.errors import APIError, ConfigurationError
from aibitat.functions import create_function
from aibitat.providers import Message

from .base import Plugin

if TYPE_CHECKING:
    from aibitat.config import Settings
    from aibitat.engine import AIbitat

logger = logging.getLogger(__name__)

FUNCTION_NAME = "web-browsing"
SEARCH_URL = "https://google.serper.dev/search"
USER_AGENT = "Mozilla/5.0 (compatible; aibitat)"

SUMMARY_PROMPT = """Write a detailed summary of the following text for a research purpose:
"{text}"
SUMMARY:"""

PARAMETERS: dict[str, Any] = {
    "type": "object",
    "properties": {
        "query": {"type": "string", "description": "A search query."},
        "url": {"type": "string", "format": "uri", "description": "A web URL."},
    },
    "additionalProperties": False,
}


def html_to_text(html: str) -> str:
    """Visible text of an HTML page, one non-empty line per block."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()

    lines = (line.strip() for line in soup.get_text(separator="\n").splitlines())
    return "\n".join(line for line in lines if line)


def split_text(text: str, chunk_size: int, chunk_overlap: int = 0) -> list[str]:
    """Split text into chunks of at most ``chunk_size`` characters.

    A chunk ends on a paragraph break, else a line break, when one falls in
    the second half of its window. Consecutive chunks share up to
    ``chunk_overlap`` characters.
    """
    chunks = []
    start = 0
    while start < len(text):
        end = min(start + chunk_size, len(text))
        if end < len(text):
            for separator in ("\n\n", "\n"):
                cut = text.rfind(separator, start + chunk_size // 2, end)
                if cut != -1:
                    end = cut + len(separator)
                    break

        chunk = text[start:end].strip()
        if chunk:
            chunks.append(chunk)
        if end >= len(text):
            break
        start = max(end - chunk_overlap, start + 1)
    return chunks


def format_search_results(data: dict[str, Any], max_results: int = 5) -> str:
    """Render a serper.dev response as a numbered list for the model."""
    lines = []

    answer = data.get("answerBox") or {}
    direct = answer.get("answer") or answer.get("snippet")
    if direct:
        lines.append(f"Answer: {direct}")

    for i, result in enumerate(data.get("organic", [])[:max_results], start=1):
        lines.append(f"{i}. {result.get('title', '')}")
        lines.append(f"   {result.get('link', '')}")
        if result.get("snippet"):
            lines.append(f"   {result['snippet']}")

    return "\n".join(lines) or "No results found."


class WebBrowsingPlugin(Plugin):
    """Registers the ``web-browsing`` function on the engine.

    With a ``url`` argument the function reads the page as plain text. Pages
    longer than ``max_length`` are summarized chunk by chunk with the
    engine's default provider, and the summaries summarized again. With a
    ``query`` argument it searches Google through serper.dev, which needs
    an API key.

    Failures surface as exceptions, which the function executor reports
    back to the calling model.
    """

    name = "web-browsing"

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: float = 20.0,
        max_results: int = 5,
        max_length: int = 8000,
        chunk_size: int = 10000,
        chunk_overlap: int = 500,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the plugin.

        Args:
            api_key: serper.dev API key used for searches
            timeout: Seconds allowed for each HTTP request
            max_results: Search results shown to the model
            max_length: Longest page text returned without summarizing
            chunk_size: Characters per summarized chunk
            chunk_overlap: Characters shared by consecutive chunks
            transport: httpx transport, e.g. a mock in tests
        """
        self.api_key = api_key
        self.timeout = timeout
        self.max_results = max_results
        self.max_length = max_length
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self._transport = transport
        self._aibitat: Optional["AIbitat"] = None

    @classmethod
    def from_settings(cls, settings: "Settings", **kwargs: Any) -> "WebBrowsingPlugin":
        """Build the plugin from the ``browsing`` settings section."""
        browsing = settings.browsing
        options = {
            "api_key": settings.serper_api_key,
            "timeout": browsing.timeout,
            "max_results": browsing.max_results,
            "max_length": browsing.max_length,
            "chunk_size": browsing.chunk_size,
            "chunk_overlap": browsing.chunk_overlap,
        }
        options.update(kwargs)
        return cls(**options)

    def setup(self, aibitat: "AIbitat") -> None:
        self._aibitat = aibitat
        aibitat.function(
            create_function(
                name=FUNCTION_NAME,
                description="Searches for a given query online or navigate to a given url.",
                handler=self.browse,
                parameters=PARAMETERS,
            )
        )

    async def browse(self, arguments: dict[str, Any]) -> str:
        """Handler of the ``web-browsing`` function."""
        url = arguments.get("url")
        if url:
            return await self.scrape(url)

        query = arguments.get("query")
        if query:
            return await self.search(query)

        raise ValueError("either 'query' or 'url' is required")

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT},
            transport=self._transport,
        )

    async def search(self, query: str) -> str:
        """Search Google through serper.dev."""
        if not self.api_key:
            raise ConfigurationError("Web search needs a serper.dev key (SERPER_API_KEY)")

        logger.info(f"Searching the web for {query!r}")
        async with self._client() as client:
            response = await client.post(
                SEARCH_URL,
                headers={"X-API-KEY": self.api_key},
                json={"q": query},
            )
            response.raise_for_status()

        return format_search_results(response.json(), self.max_results)

    async def scrape(self, url: str) -> str:
        """Read a page as text, summarized when it is too long."""
        logger.info(f"Reading {url}")
        async with self._client() as client:
            response = await client.get(url)
            response.raise_for_status()

        if "html" in response.headers.get("content-type", ""):
            text = html_to_text(response.text)
        else:
            text = response.text.strip()

        if len(text) <= self.max_length:
            return text

        logger.info(f"{url} has {len(text)} characters of text, summarizing")
        return await self.summarize(text)

    async def summarize(self, text: str) -> str:
        """Map-reduce summary of ``text`` with the engine's default provider.

        When the provider fails, the text is cut to ``max_length`` instead.
        """
        if self._aibitat is None:
            raise RuntimeError("WebBrowsingPlugin is not installed on an engine")

        try:
            summaries = [
                await self._summarize_chunk(chunk)
                for chunk in split_text(text, self.chunk_size, self.chunk_overlap)
            ]
            if len(summaries) == 1:
                return summaries[0]
            return await self._summarize_chunk("\n\n".join(summaries))
        except APIError as e:
            logger.warning(f"Summarizing failed ({e.message}); truncating the page instead")
            return text[: self.max_length]

    async def _summarize_chunk(self, chunk: str) -> str:
        aibitat = self._aibitat
        messages = [Message.user(SUMMARY_PROMPT.format(text=chunk))]
        completion = await aibitat.complete(aibitat.default_provider, messages)
        return (completion.result or "").strip()
