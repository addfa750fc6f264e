"""Tests for the web-browsing plugin."""

import json

import httpx
import pytest

from aibitat.config import Settings
from aibitat.engine import AIbitat
from aibitat.errors import ConfigurationError, ServerError
from aibitat.plugins import WebBrowsingPlugin
from aibitat.plugins.web_browsing import (
    SEARCH_URL,
    format_search_results,
    html_to_text,
    split_text,
)
from aibitat.providers import Completion, FunctionCall

HUMAN = "🧑"
BOT = "🤖"

PAGE = """
<html>
  <head><title>Bees</title><style>p { color: gold; }</style></head>
  <body>
    <script>track();</script>
    <h1>Bees</h1>
    <p>Bees dance.</p>
  </body>
</html>
"""

SEARCH_RESPONSE = {
    "answerBox": {"answer": "Yes"},
    "organic": [
        {"title": "Bees", "link": "https://example.com/bees", "snippet": "All about bees"},
        {"title": "Hives", "link": "https://example.com/hives"},
    ],
}


def long_page(paragraphs: int = 3, words: int = 120) -> str:
    body = "".join(f"<p>{f'word{i} ' * words}</p>" for i in range(paragraphs))
    return f"<html><body>{body}</body></html>"


def serve(pages: dict, requests: list = None) -> httpx.MockTransport:
    """Transport answering GETs from ``pages`` and searches with SEARCH_RESPONSE."""

    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        if str(request.url) == SEARCH_URL:
            return httpx.Response(200, json=SEARCH_RESPONSE)
        if str(request.url) in pages:
            return httpx.Response(200, html=pages[str(request.url)])
        return httpx.Response(404, text="not found")

    return httpx.MockTransport(handler)


def call(arguments: dict) -> Completion:
    return Completion(function_call=FunctionCall(name="web-browsing", arguments=json.dumps(arguments)))


class TestPageText:
    """Tests for turning pages into text for the model."""

    def test_html_to_text(self) -> None:
        """Test that scripts and styles are dropped and blank lines removed."""
        assert html_to_text(PAGE) == "Bees\nBees\nBees dance."

    def test_split_text_on_line_breaks(self) -> None:
        """Test that chunks end on line breaks within the window."""
        text = "\n".join(["a" * 60, "b" * 60, "c" * 60])

        assert split_text(text, chunk_size=100) == ["a" * 60, "b" * 60, "c" * 60]

    def test_split_text_overlap(self) -> None:
        """Test that unbroken text is cut at the size with shared characters."""
        chunks = split_text("x" * 250, chunk_size=100, chunk_overlap=10)

        assert [len(c) for c in chunks] == [100, 100, 70]

    def test_short_text_is_one_chunk(self) -> None:
        """Test text that fits in a single chunk."""
        assert split_text("short", chunk_size=100) == ["short"]
        assert split_text("", chunk_size=100) == []

    def test_format_search_results(self) -> None:
        """Test the numbered result list."""
        assert format_search_results(SEARCH_RESPONSE) == (
            "Answer: Yes\n"
            "1. Bees\n   https://example.com/bees\n   All about bees\n"
            "2. Hives\n   https://example.com/hives"
        )
        assert format_search_results(SEARCH_RESPONSE, max_results=1).count("https://") == 1
        assert format_search_results({}) == "No results found."


class TestWebBrowsingPlugin:
    """Tests for WebBrowsingPlugin."""

    @pytest.mark.asyncio
    async def test_search(self) -> None:
        """Test that searches go to serper.dev with the API key."""
        requests = []
        plugin = WebBrowsingPlugin(api_key="serper-key", transport=serve({}, requests))

        result = await plugin.browse({"query": "bees"})

        assert result.startswith("Answer: Yes\n1. Bees")
        assert requests[0].method == "POST"
        assert requests[0].headers["X-API-KEY"] == "serper-key"
        assert json.loads(requests[0].content) == {"q": "bees"}

    @pytest.mark.asyncio
    async def test_search_needs_key(self) -> None:
        """Test that searching without a key fails before any request."""
        requests = []
        plugin = WebBrowsingPlugin(transport=serve({}, requests))

        with pytest.raises(ConfigurationError, match="SERPER_API_KEY"):
            await plugin.browse({"query": "bees"})

        assert requests == []

    @pytest.mark.asyncio
    async def test_url_wins_over_query(self) -> None:
        """Test that a url argument reads the page."""
        plugin = WebBrowsingPlugin(transport=serve({"https://example.com/bees": PAGE}))

        result = await plugin.browse({"url": "https://example.com/bees", "query": "bees"})

        assert result == "Bees\nBees\nBees dance."

    @pytest.mark.asyncio
    async def test_http_errors_propagate(self) -> None:
        """Test that a failing page raises for the executor to report."""
        plugin = WebBrowsingPlugin(transport=serve({}))

        with pytest.raises(httpx.HTTPStatusError):
            await plugin.browse({"url": "https://example.com/missing"})

    @pytest.mark.asyncio
    async def test_arguments_required(self) -> None:
        """Test a call with neither query nor url."""
        with pytest.raises(ValueError, match="'query' or 'url'"):
            await WebBrowsingPlugin().browse({})

    @pytest.mark.asyncio
    async def test_long_page_is_summarized(self, make_provider) -> None:
        """Test map-reduce summaries through the engine, counted in its cost."""
        provider = make_provider(["summary"], cost=0.25)
        plugin = WebBrowsingPlugin(
            max_length=500,
            chunk_size=1000,
            chunk_overlap=0,
            transport=serve({"https://example.com/long": long_page()}),
        )
        aibitat = AIbitat(provider=provider).use(plugin)

        result = await plugin.browse({"url": "https://example.com/long"})

        assert result == "summary"
        # One summary per paragraph, then one of the summaries
        assert provider.call_count == 4
        assert "Write a detailed summary" in provider.calls[0][0].content
        assert "word0" in provider.calls[0][0].content
        assert "word1" not in provider.calls[0][0].content
        assert aibitat.cost == 1.0

    @pytest.mark.asyncio
    async def test_summary_failure_truncates(self, make_provider) -> None:
        """Test that a provider error falls back to the start of the page."""
        plugin = WebBrowsingPlugin(
            max_length=500,
            transport=serve({"https://example.com/long": long_page()}),
        )
        AIbitat(provider=make_provider([ServerError("down")])).use(plugin)

        result = await plugin.browse({"url": "https://example.com/long"})

        assert len(result) == 500
        assert result.startswith("word0 word0")

    def test_from_settings(self) -> None:
        """Test building the plugin from settings."""
        settings = Settings(serper_api_key="serper-key", browsing={"max_length": 1000, "timeout": 5})

        plugin = WebBrowsingPlugin.from_settings(settings)

        assert plugin.api_key == "serper-key"
        assert plugin.max_length == 1000
        assert plugin.timeout == 5


class TestWebBrowsingFunction:
    """Tests for agents calling the web-browsing function."""

    @pytest.mark.asyncio
    async def test_page_is_fed_back(self, make_provider) -> None:
        """Test that an agent listing the function reads a page mid-turn."""
        provider = make_provider([call({"url": "https://example.com/bees"}), "TERMINATE"])
        plugin = WebBrowsingPlugin(transport=serve({"https://example.com/bees": PAGE}))
        aibitat = (
            AIbitat(provider=provider)
            .use(plugin)
            .agent(HUMAN, interrupt="ALWAYS")
            .agent(BOT, functions=["web-browsing"])
        )

        await aibitat.start(HUMAN, BOT, "What do bees do?")

        assert [d.name for d in provider.function_sets[0]] == ["web-browsing"]
        assert provider.calls[1][-1].content == "Bees\nBees\nBees dance."
        assert aibitat.chats[-1].content == "TERMINATE"

    @pytest.mark.asyncio
    async def test_failures_are_reported_to_model(self, make_provider) -> None:
        """Test that a missing key becomes an error message, not a crash."""
        provider = make_provider([call({"query": "bees"}), "TERMINATE"])
        aibitat = (
            AIbitat(provider=provider)
            .use(WebBrowsingPlugin(transport=serve({})))
            .agent(HUMAN, interrupt="ALWAYS")
            .agent(BOT, functions=["web-browsing"])
        )

        await aibitat.start(HUMAN, BOT, "Search bees")

        content = provider.calls[1][-1].content
        assert content.startswith("Error: Function 'web-browsing' failed: ConfigurationError")
        assert aibitat.chats[-1].content == "TERMINATE"
