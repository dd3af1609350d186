"""
Shared fixtures and fakes. No test touches the network: DNS, web and the
text-generation service are all replaced here.
"""

import asyncio
import os

# Settings are read on first use; make sure no real key leaks into tests
os.environ["ANTHROPIC_API_KEY"] = ""
os.environ["ANTHROPIC_API_KEY_FALLBACK"] = ""
os.environ["USE_BROWSER"] = "false"

import pytest

from config import get_settings
from models import ContactSource
from clients.email_checker import EmailChecker
from clients.llm_client import LLMResponse, LLMError
from clients.strategies import SourceStrategy
from clients.web_fetcher import SearchResult


class FakeResolver:
    """MX lookup stand-in: every domain has mail except the listed ones and *.invalid."""

    def __init__(self, unreachable=None, error_domains=None):
        self.unreachable = set(unreachable or [])
        self.error_domains = set(error_domains or [])
        self.calls = []

    async def __call__(self, domain: str) -> bool:
        self.calls.append(domain)
        if domain in self.error_domains:
            raise RuntimeError(f"resolver exploded for {domain}")
        return domain not in self.unreachable and not domain.endswith(".invalid")


class FakeLLM:
    """Returns queued responses in order; an Exception instance is raised instead."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    async def call(self, prompt, temperature=0.7, max_tokens=1024, system=None):
        self.calls.append({"prompt": prompt, "temperature": temperature, "max_tokens": max_tokens})
        if not self.responses:
            raise LLMError("no response queued")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return LLMResponse(content=response, model="fake-model", key_type="primary")


class FakeFetcher:
    """
    Page and search stand-in.

    pages: url -> html ("https://x/*" matches by prefix)
    searches: query substring -> [SearchResult]
    """

    def __init__(self, pages=None, searches=None):
        self.pages = pages or {}
        self.searches = searches or {}
        self.fetched = []
        self.rendered = []
        self.queries = []

    async def fetch(self, url, render=False):
        self.fetched.append(url)
        if render:
            self.rendered.append(url)
        for key, html in self.pages.items():
            if url == key or url.rstrip('/') == key.rstrip('/'):
                return html
            if key.endswith('*') and url.startswith(key[:-1]):
                return html
        return None

    async def search(self, query, max_results=10):
        self.queries.append(query)
        for key, results in self.searches.items():
            if key in query:
                return list(results)[:max_results]
        return []

    async def aclose(self):
        pass


class FakeStrategy(SourceStrategy):
    """Strategy returning canned candidates; counts calls."""

    def __init__(self, name, results=None, error=None, delay=0.0, source=ContactSource.COMPANY_SITE):
        super().__init__(fetcher=None)
        self.name = name
        self.source = source
        self.results = list(results or [])
        self.error = error
        self.delay = delay
        self.calls = 0

    async def _discover(self, filters):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return list(self.results)


class FailingGenerator:
    """Synthetic generator whose LLM tier always fails."""

    def __init__(self):
        from clients.synthetic_generator import SyntheticGenerator
        self._static = SyntheticGenerator(llm_client=FakeLLM())
        self.generate_calls = 0

    async def generate(self, filters):
        from clients.synthetic_generator import SyntheticGenerationError
        self.generate_calls += 1
        raise SyntheticGenerationError("text generation unavailable")

    def static_examples(self, filters):
        return self._static.static_examples(filters)


@pytest.fixture(autouse=True)
def data_dir(tmp_path, monkeypatch):
    """Every test gets its own data dir (stats + prospect store)."""
    monkeypatch.setenv("DATA_DIR", str(tmp_path))
    get_settings.cache_clear()
    yield tmp_path
    get_settings.cache_clear()


@pytest.fixture
def resolver():
    return FakeResolver()


@pytest.fixture
def email_checker(resolver):
    return EmailChecker(resolver=resolver)


def make_search_result(url, title="", snippet=""):
    return SearchResult(url=url, title=title, snippet=snippet)
