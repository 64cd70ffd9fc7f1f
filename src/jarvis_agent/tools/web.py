import asyncio
from typing import Dict, List

import httpx
from bs4 import BeautifulSoup

from ..utils.helpers import truncate_query
from ..utils.logging import Icons, pretty_log

USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
PAGE_TEXT_LIMIT = 8000


def format_search_results(results: List[Dict]) -> str:
    """Numbered `title <link>` lines, each followed by its snippet."""
    if not results:
        return "No results found. Try a broader query."
    blocks = []
    for n, hit in enumerate(results, 1):
        snippet = hit.get("body") or hit.get("content") or ""
        url = hit.get("href") or hit.get("url") or "no link"
        blocks.append(f"{n}. {hit.get('title') or 'Untitled'} <{url}>\n   {snippet}".rstrip())
    return "\n".join(blocks)


async def tool_web_search(query: str, max_results: int = 5):
    pretty_log("Web Search", truncate_query(query), icon=Icons.TOOL_SEARCH)
    from ddgs import DDGS

    def run():
        with DDGS(timeout=15) as ddgs:
            return list(ddgs.text(query, max_results=max_results))

    for attempt in range(2):
        try:
            raw_results = await asyncio.to_thread(run)
            return format_search_results(raw_results)
        except Exception as e:
            pretty_log("Search Retry", str(e), level="WARN", icon=Icons.RETRY)
            if attempt == 0:
                await asyncio.sleep(1)

    return "Error: Search failed after 2 attempts."


def extract_page_text(html: str) -> str:
    soup = BeautifulSoup(html, 'html.parser')
    for tag in soup(["script", "style", "nav", "footer", "iframe", "svg"]):
        tag.decompose()
    text = soup.get_text(separator=' ', strip=True)
    return " ".join(text.split())


async def tool_browse_webpage(url: str):
    pretty_log("Browse", url, icon=Icons.TOOL_SEARCH)
    if not url.lower().startswith(("http://", "https://")):
        return f"Error: Unsupported URL '{url}'. Use an http(s) address."

    try:
        async with httpx.AsyncClient(timeout=20.0, follow_redirects=True) as client:
            resp = await client.get(url, headers={"User-Agent": USER_AGENT})
    except httpx.HTTPError as e:
        return f"Error reading {url}: {e}"

    if resp.status_code != 200:
        return f"Error: Received status {resp.status_code} from {url}"

    text = extract_page_text(resp.text)
    if not text:
        return "Error: No text content extracted from page."
    if len(text) > PAGE_TEXT_LIMIT:
        text = text[:PAGE_TEXT_LIMIT] + " ...[TRUNCATED]"
    return text
