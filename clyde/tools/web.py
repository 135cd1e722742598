"""Web tools: browse and web_search."""

from collections.abc import Sequence

import httpx
from bs4 import BeautifulSoup
from pydantic import BaseModel, Field

from clyde.clients.anthropic import ModelClient, ModelClientError
from clyde.models.llm import LLMMessage, TextBlock
from clyde.tools.base import ToolDefinition, ToolError
from clyde.utils.logging import get_logger

logger = get_logger(__name__)

BRAVE_SEARCH_URL = "https://api.search.brave.com/res/v1/web/search"
USER_AGENT = "Mozilla/5.0 (compatible; clyde/0.1; +https://github.com/clyde-agent/clyde)"
REQUEST_TIMEOUT = 30.0

DEFAULT_WORD_LIMIT = 500
MAX_WORD_LIMIT = 1000
DEFAULT_NUM_RESULTS = 5
MAX_NUM_RESULTS = 10

NON_CONTENT_TAGS = ["script", "style", "noscript", "template", "svg", "header", "footer", "nav", "aside", "form"]

BROWSE_SYSTEM_PROMPT = (
    "You answer questions about the content of a single web page. Use only the page content provided. "
    "If the page does not contain the answer, say so briefly."
)


class BrowseInput(BaseModel):
    """Input schema for browse."""

    url: str = Field(..., description="The URL to fetch, including the scheme, e.g. 'https://example.com'.")
    prompt: str = Field(
        default="",
        description="Optional question or instruction about the page. When given, an answer is extracted "
        "from the page instead of returning its text.",
    )
    max_length: int = Field(
        default=DEFAULT_WORD_LIMIT,
        description=f"Maximum number of words of page text to use (default {DEFAULT_WORD_LIMIT}, "
        f"at most {MAX_WORD_LIMIT}).",
    )


class WebSearchInput(BaseModel):
    """Input schema for web_search."""

    query: str = Field(..., description="The search query.")
    num_results: int = Field(
        default=DEFAULT_NUM_RESULTS,
        description=f"Number of results to return (default {DEFAULT_NUM_RESULTS}, at most {MAX_NUM_RESULTS}).",
    )


def create_http_client(transport: httpx.AsyncBaseTransport | None = None) -> httpx.AsyncClient:
    """Create the HTTP client used by the web tools."""
    return httpx.AsyncClient(
        transport=transport,
        follow_redirects=True,
        timeout=REQUEST_TIMEOUT,
        headers={"User-Agent": USER_AGENT},
    )


def html_to_text(html: str) -> str:
    """Extract readable text from an HTML document."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(NON_CONTENT_TAGS):
        tag.decompose()
    return soup.get_text(separator=" ", strip=True)


def limit_words(text: str, max_words: int) -> str:
    words = text.split()
    if len(words) <= max_words:
        return " ".join(words)
    return " ".join(words[:max_words]) + " ... [truncated]"


def _word_limit(requested: int) -> int:
    if requested <= 0:
        return DEFAULT_WORD_LIMIT
    return min(requested, MAX_WORD_LIMIT)


def _validate_url(url: str) -> None:
    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL as e:
        raise ToolError(f"invalid URL format: {url}") from e
    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise ToolError(f"invalid URL format: {url} (expected an http:// or https:// URL)")


def _latest_user_text(history: Sequence[LLMMessage]) -> str:
    for message in reversed(history):
        if message.role == "user" and isinstance(message.content, str):
            return message.content
    return ""


async def _fetch_page_text(url: str, transport: httpx.AsyncBaseTransport | None) -> str:
    try:
        async with create_http_client(transport) as http:
            response = await http.get(url)
    except httpx.HTTPError as e:
        raise ToolError(f"failed to fetch {url}: {e}") from e

    if response.status_code >= 400:
        raise ToolError(f"failed to fetch {url}: HTTP {response.status_code} {response.reason_phrase}".rstrip())

    content_type = response.headers.get("content-type", "")
    if "html" in content_type or not content_type:
        return html_to_text(response.text)
    return response.text.strip()


async def _answer_from_page(
    client: ModelClient, url: str, page_text: str, prompt: str, history: Sequence[LLMMessage]
) -> str:
    request = f"Page URL: {url}\n\nPage content:\n{page_text}\n\nQuestion: {prompt}"
    context = _latest_user_text(history)
    if context:
        request += f"\n\nThe user's latest request, for context: {context}"

    try:
        response = await client.create_message(
            messages=[LLMMessage(role="user", content=request)],
            system_prompt=BROWSE_SYSTEM_PROMPT,
            tools=None,
        )
    except ModelClientError as e:
        raise ToolError(f"failed to analyse {url}: {e}") from e

    answer = "\n".join(block.text for block in response.content if isinstance(block, TextBlock) and block.text)
    if not answer:
        raise ToolError(f"failed to analyse {url}: the model returned no text")
    return answer


def create_browse_tool(transport: httpx.AsyncBaseTransport | None = None) -> ToolDefinition:
    """Create the browse tool.

    Args:
        transport: Optional httpx transport, used by tests to serve canned pages
    """

    async def browse_handler(params: BrowseInput, client: ModelClient | None, history: Sequence[LLMMessage]) -> str:
        url = params.url.strip()
        if not url:
            raise ToolError("url is required")
        _validate_url(url)

        text = await _fetch_page_text(url, transport)
        if not text:
            raise ToolError(f"no readable content found at {url}")

        page_text = limit_words(text, _word_limit(params.max_length))
        logger.debug(f"Fetched {len(page_text.split())} words from {url}")

        if params.prompt and client is not None:
            return await _answer_from_page(client, url, page_text, params.prompt, history)

        return f"Content from {url}:\n\n{page_text}"

    return ToolDefinition(
        name="browse",
        description=(
            "Fetch a web page and return its readable text (HTML converted to plain text, redirects followed). "
            "Pass a prompt to extract specific information from the page instead of returning the raw text."
        ),
        input_schema_class=BrowseInput,
        handler=browse_handler,
        display=lambda params: f"→ Browsing: {params.url}",
    )


def _format_results(query: str, results: list[dict]) -> str:
    lines = [f"Found {len(results)} results for '{query}':", ""]
    for index, result in enumerate(results, start=1):
        lines.append(f"{index}. {result.get('title', '(no title)')}")
        lines.append(f"   {result.get('url', '')}")
        if description := html_to_text(result.get("description", "")):
            lines.append(f"   {description}")
        lines.append("")
    return "\n".join(lines).rstrip()


def create_web_search_tool(
    api_key: str | None, transport: httpx.AsyncBaseTransport | None = None
) -> ToolDefinition:
    """Create the web_search tool backed by the Brave Search API.

    Args:
        api_key: Brave Search API key; the tool reports an error on use when it is missing
        transport: Optional httpx transport, used by tests
    """

    async def web_search_handler(
        params: WebSearchInput, client: ModelClient | None, history: Sequence[LLMMessage]
    ) -> str:
        if not api_key:
            raise ToolError(
                "BRAVE_SEARCH_API_KEY not found in configuration. "
                "Get an API key at https://brave.com/search/api/ and add it to your config file."
            )
        query = params.query.strip()
        if not query:
            raise ToolError("query is required")

        count = params.num_results if params.num_results > 0 else DEFAULT_NUM_RESULTS
        count = min(count, MAX_NUM_RESULTS)

        try:
            async with create_http_client(transport) as http:
                response = await http.get(
                    BRAVE_SEARCH_URL,
                    params={"q": query, "count": count},
                    headers={"Accept": "application/json", "X-Subscription-Token": api_key},
                )
        except httpx.HTTPError as e:
            raise ToolError(f"web search failed: {e}") from e

        if response.status_code >= 400:
            raise ToolError(f"web search failed: HTTP {response.status_code} {response.text[:200]}".rstrip())

        try:
            payload = response.json()
        except ValueError as e:
            raise ToolError("web search failed: response was not valid JSON") from e

        results = (payload.get("web") or {}).get("results") or []
        if not results:
            return f"No results found for '{query}'"
        return _format_results(query, results[:count])

    return ToolDefinition(
        name="web_search",
        description=(
            "Search the web with the Brave Search API. Returns titles, URLs and descriptions of the top results. "
            "Use browse afterwards to read a result in full."
        ),
        input_schema_class=WebSearchInput,
        handler=web_search_handler,
        display=lambda params: f"→ Searching the web: {params.query}",
    )
