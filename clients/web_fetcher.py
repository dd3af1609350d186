"""
Request-scoped web access for the source strategies.

- Plain HTTP via one lazily created httpx client (browser-like headers)
- Optional headless Chromium (Playwright) for JS-heavy listings
- Web search via DuckDuckGo's HTML endpoint (no API key)

Every failure returns None / [] so a dead site never takes a strategy down.
Use as `async with WebFetcher() as fetcher:` - both resources are released
on exit.
"""

import logging
from dataclasses import dataclass
from typing import Optional, List
from urllib.parse import urlparse, parse_qs, unquote, urljoin

import httpx
from bs4 import BeautifulSoup

from config import get_settings
from utils.cost_tracker import track_search, track_fetch

logger = logging.getLogger(__name__)

# Maximum page size to keep (directory listings and team pages can be image-heavy)
MAX_PAGE_SIZE = 100_000

SEARCH_URL = "https://html.duckduckgo.com/html/"

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

BROWSER_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}


@dataclass
class SearchResult:
    """One organic web search hit."""
    url: str
    title: str = ""
    snippet: str = ""


class WebFetcher:
    """
    HTTP + browser access for one discovery request.

    The browser is only launched when `use_browser` is enabled and a caller
    asks for `render=True`; a failed render falls back to plain HTTP.
    """

    def __init__(self, use_browser: Optional[bool] = None):
        settings = get_settings()
        self.fetch_timeout = settings.fetch_timeout
        self.search_timeout = settings.search_timeout
        self.use_browser = settings.use_browser if use_browser is None else use_browser
        self._http_client: Optional[httpx.AsyncClient] = None
        self._playwright = None
        self._browser = None

    async def __aenter__(self) -> "WebFetcher":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(
                timeout=self.fetch_timeout,
                follow_redirects=True,
                headers=BROWSER_HEADERS
            )
        return self._http_client

    async def _get_browser(self):
        """Launch headless Chromium on first use."""
        if self._browser is None:
            from playwright.async_api import async_playwright

            logger.info("🎭 Starting Playwright...")
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=True,
                args=['--disable-http2', '--disable-blink-features=AutomationControlled']
            )
        return self._browser

    # ========== FETCH ==========

    async def fetch(self, url: str, render: bool = False) -> Optional[str]:
        """Return page HTML (truncated to MAX_PAGE_SIZE) or None."""
        if not url:
            return None

        if render and self.use_browser:
            html = await self._fetch_rendered(url)
            if html:
                return html
            logger.debug(f"Render failed for {url}, trying plain HTTP")

        client = await self._get_client()
        try:
            response = await client.get(url)
            if response.status_code != 200:
                logger.debug(f"GET {url}: HTTP {response.status_code}")
                track_fetch(success=False)
                return None

            track_fetch()
            content = response.text
            if len(content) > MAX_PAGE_SIZE:
                content = content[:MAX_PAGE_SIZE]
            return content

        except Exception as e:
            logger.debug(f"GET {url} failed: {e}")
            track_fetch(success=False)
            return None

    async def _fetch_rendered(self, url: str) -> Optional[str]:
        try:
            browser = await self._get_browser()
            context = await browser.new_context(
                viewport={'width': 1280, 'height': 900},
                user_agent=USER_AGENT
            )
            try:
                page = await context.new_page()
                await page.goto(url, wait_until='domcontentloaded', timeout=self.fetch_timeout * 1000)
                try:
                    await page.wait_for_load_state('networkidle', timeout=5000)
                except Exception:
                    logger.debug("  → Network idle timeout (continuing)")

                html = await page.content()
                track_fetch(rendered=True)
                return html[:MAX_PAGE_SIZE]
            finally:
                await context.close()

        except ImportError:
            logger.warning("⚠️ Playwright not installed")
            self.use_browser = False
            return None
        except Exception as e:
            logger.warning(f"❌ Playwright error for {url}: {e}")
            track_fetch(rendered=True, success=False)
            return None

    # ========== SEARCH ==========

    async def search(self, query: str, max_results: int = 10) -> List[SearchResult]:
        """DuckDuckGo HTML search. Redirect links are unwrapped to the target URL."""
        query = (query or "").strip()
        if not query:
            return []

        client = await self._get_client()
        try:
            response = await client.post(
                SEARCH_URL,
                data={"q": query},
                headers={"Referer": "https://duckduckgo.com/"},
                timeout=self.search_timeout
            )
            if response.status_code != 200:
                logger.debug(f"Search '{query}': HTTP {response.status_code}")
                track_search(success=False)
                return []
            track_search()
        except Exception as e:
            logger.warning(f"Search failed for '{query}': {e}")
            track_search(success=False)
            return []

        results = parse_search_results(response.text, max_results)
        logger.debug(f"Search '{query}': {len(results)} result(s)")
        return results

    async def aclose(self):
        """Close HTTP client and browser."""
        if self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()
        self._http_client = None

        if self._browser is not None:
            try:
                await self._browser.close()
            except Exception as e:
                logger.debug(f"Browser close failed: {e}")
            self._browser = None

        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as e:
                logger.debug(f"Playwright stop failed: {e}")
            self._playwright = None


def parse_search_results(html: str, max_results: int = 10) -> List[SearchResult]:
    """Parse `.result` blocks of a DuckDuckGo HTML results page."""
    if not html:
        return []

    soup = BeautifulSoup(html, "lxml")
    results: List[SearchResult] = []
    seen = set()

    for block in soup.select(".result"):
        link = block.select_one(".result__a")
        if not link or not link.get("href"):
            continue

        url = unwrap_redirect(link["href"])
        if not url.startswith("http") or url in seen:
            continue
        seen.add(url)

        snippet_elem = block.select_one(".result__snippet")
        results.append(SearchResult(
            url=url,
            title=link.get_text(" ", strip=True),
            snippet=snippet_elem.get_text(" ", strip=True) if snippet_elem else ""
        ))

        if len(results) >= max_results:
            break

    return results


def unwrap_redirect(href: str) -> str:
    """
    DuckDuckGo wraps result links like
    //duckduckgo.com/l/?uddg=https%3A%2F%2Facme.com%2F - return the target.
    """
    if not href:
        return href

    absolute = urljoin("https://duckduckgo.com", href)
    parsed = urlparse(absolute)
    if "duckduckgo.com" in (parsed.netloc or "") and parsed.path.startswith("/l/"):
        target = parse_qs(parsed.query or "").get("uddg")
        if target:
            return unquote(target[0])

    return absolute
