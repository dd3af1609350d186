import pytest

from clients.web_fetcher import WebFetcher, parse_search_results, unwrap_redirect


SEARCH_PAGE = """
<html><body>
<div class="result">
  <a class="result__a" href="//duckduckgo.com/l/?uddg=https%3A%2F%2Fwww.linkedin.com%2Fin%2Fjane-doe&rut=abc">Jane Doe - CEO - Acme Corp | LinkedIn</a>
  <a class="result__snippet">Jane Doe is the CEO of Acme Corp.</a>
</div>
<div class="result">
  <a class="result__a" href="https://acme.com/about">About Acme</a>
</div>
<div class="result">
  <a class="result__a" href="https://acme.com/about">Duplicate</a>
</div>
<div class="result">
  <span>no link here</span>
</div>
<div class="result">
  <a class="result__a" href="https://globex.com/">Globex</a>
</div>
</body></html>
"""


def test_unwrap_redirect():
    wrapped = "//duckduckgo.com/l/?uddg=https%3A%2F%2Facme.com%2Fteam&rut=xyz"
    assert unwrap_redirect(wrapped) == "https://acme.com/team"
    assert unwrap_redirect("https://acme.com/") == "https://acme.com/"
    assert unwrap_redirect("") == ""


def test_parse_search_results():
    results = parse_search_results(SEARCH_PAGE, max_results=10)

    assert [r.url for r in results] == [
        "https://www.linkedin.com/in/jane-doe",
        "https://acme.com/about",
        "https://globex.com/",
    ]
    assert results[0].title == "Jane Doe - CEO - Acme Corp | LinkedIn"
    assert results[0].snippet == "Jane Doe is the CEO of Acme Corp."
    assert results[1].snippet == ""


def test_parse_search_results_respects_max():
    assert len(parse_search_results(SEARCH_PAGE, max_results=2)) == 2
    assert parse_search_results("", 5) == []


@pytest.mark.asyncio
async def test_empty_inputs_do_no_io():
    async with WebFetcher(use_browser=False) as fetcher:
        assert await fetcher.fetch("") is None
        assert await fetcher.search("   ") == []
        assert fetcher._http_client is None
