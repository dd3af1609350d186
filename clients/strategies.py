"""
Source strategies for prospect discovery.

Each strategy turns SearchFilters into raw CandidateContacts from one kind
of public source. Strategies are tried in priority order by the pipeline:

1. DirectoryStrategy - business listings (Yellow Pages) + their websites
2. ProfessionalNetworkStrategy - public profile pages via web search
3. CompanySiteStrategy - company sites found via web search, team pages crawled

A strategy never raises: any failure is logged and yields [].
`limit` bounds how much work a strategy does, it is not a result cap.
"""

import logging
from typing import Optional, List
from urllib.parse import urlparse, urljoin, quote_plus

from bs4 import BeautifulSoup

from config import get_settings, Settings
from models import SearchFilters, CandidateContact, ContactSource
from clients.contact_extractor import ContactExtractor, ExtractionContext, clean_profile_url
from clients.web_fetcher import WebFetcher

logger = logging.getLogger(__name__)

DIRECTORY_SEARCH_URL = "https://www.yellowpages.com/search"

# Keywords to find team links on a company homepage (anchor text or path)
TEAM_LINK_KEYWORDS = [
    "team", "leadership", "about", "staff", "people", "management", "contact"
]

# Result hosts that are never a company's own site
SKIP_DOMAINS = {
    'linkedin.com', 'facebook.com', 'twitter.com', 'x.com', 'instagram.com',
    'youtube.com', 'wikipedia.org', 'glassdoor.com', 'indeed.com',
    'yelp.com', 'yellowpages.com', 'duckduckgo.com', 'google.com',
    'bing.com', 'reddit.com', 'amazon.com', 'crunchbase.com', 'bloomberg.com',
}

# Used when the filters carry no search terms at all
DEFAULT_SEARCH_TERMS = "business owner"

PROFILE_SEARCH_SCOPE = "site:linkedin.com/in/"
MAX_PROFILE_QUERIES = 3
MAX_SEARCH_RESULTS = 20


class SourceStrategy:
    """Base class: `discover` wraps `_discover` so one bad source can't sink a run."""

    name = "base"
    source = ContactSource.COMPANY_SITE

    def __init__(
        self,
        fetcher: WebFetcher,
        extractor: Optional[ContactExtractor] = None,
        settings: Optional[Settings] = None
    ):
        self.fetcher = fetcher
        self.extractor = extractor or ContactExtractor()
        self.settings = settings or get_settings()

    async def discover(self, filters: SearchFilters) -> List[CandidateContact]:
        try:
            contacts = await self._discover(filters)
        except Exception as e:
            logger.warning(f"Strategy {self.name} failed: {e}")
            return []

        logger.info(f"  {self.name}: {len(contacts)} candidate(s)")
        return contacts

    async def _discover(self, filters: SearchFilters) -> List[CandidateContact]:
        raise NotImplementedError

    def _context(self, filters: SearchFilters, **overrides) -> ExtractionContext:
        values = dict(
            source=self.source,
            industry=filters.primary_industry,
            location=filters.location,
        )
        values.update(overrides)
        return ExtractionContext(**values)

    async def _crawl_site(
        self,
        url: str,
        filters: SearchFilters,
        company: Optional[str] = None,
        location: Optional[str] = None
    ) -> List[CandidateContact]:
        """Homepage + up to max_pages_per_site-1 same-host team/about pages."""
        root_html = await self.fetcher.fetch(url)
        if not root_html:
            return []

        root_context = self._context(filters, url=url, company=company, location=location or filters.location)
        contacts = self.extractor.extract_from_html(root_html, root_context)

        team_links = find_team_links(root_html, url)[:max(self.settings.max_pages_per_site - 1, 0)]
        for link in team_links:
            html = await self.fetcher.fetch(link)
            if not html:
                continue
            # Keep the homepage title: "Team | Acme" would resolve to "Team"
            page_context = self._context(
                filters,
                url=link,
                company=company,
                location=location or filters.location,
                page_title=root_context.page_title
            )
            contacts.extend(self.extractor.extract_from_html(html, page_context))

        logger.debug(f"    {url}: {len(contacts)} contact(s) from {1 + len(team_links)} page(s)")
        return contacts


class DirectoryStrategy(SourceStrategy):
    """Business directory listing -> each listed business website."""

    name = "directory"
    source = ContactSource.DIRECTORY

    async def _discover(self, filters: SearchFilters) -> List[CandidateContact]:
        terms = " ".join(p for p in [filters.keywords, *filters.industries] if p) or DEFAULT_SEARCH_TERMS
        location = filters.location or "United States"
        url = (
            f"{DIRECTORY_SEARCH_URL}?search_terms={quote_plus(terms)}"
            f"&geo_location_terms={quote_plus(location)}"
        )

        html = await self.fetcher.fetch(url, render=True)
        if not html:
            return []

        listings = parse_directory_listings(html)
        logger.info(f"  📒 Directory: {len(listings)} listing(s) for '{terms}'")

        contacts: List[CandidateContact] = []
        sites = [l for l in listings if l["website"]][:self.settings.max_sites_per_search]
        for listing in sites:
            contacts.extend(await self._crawl_site(
                listing["website"],
                filters,
                company=listing["company"],
                location=listing["address"] or filters.location
            ))
            if len(contacts) >= filters.limit:
                break

        return contacts


class ProfessionalNetworkStrategy(SourceStrategy):
    """Public profile pages found through site-scoped web search."""

    name = "professional_network"
    source = ContactSource.PROFESSIONAL_NETWORK

    async def _discover(self, filters: SearchFilters) -> List[CandidateContact]:
        cap = max(filters.limit, self.settings.max_profile_candidates)
        contacts: List[CandidateContact] = []
        seen_urls = set()

        for query in build_profile_queries(filters):
            if len(contacts) >= cap:
                break

            logger.info(f"  🔍 Profile search: {query}")
            for result in await self.fetcher.search(query, max_results=MAX_SEARCH_RESULTS):
                if len(contacts) >= cap:
                    break

                profile_url = clean_profile_url(result.url)
                if not profile_url or profile_url in seen_urls:
                    continue
                seen_urls.add(profile_url)

                context = self._context(filters, page_title=company_from_profile_title(result.title))
                found = self.extractor.extract_from_profile_url(
                    profile_url,
                    f"{result.title} {result.snippet}",
                    context
                )
                # One profile page = one person
                contacts.extend(found[:1])

        return contacts


class CompanySiteStrategy(SourceStrategy):
    """Company websites from web search, crawled for team/about pages."""

    name = "company_site"
    source = ContactSource.COMPANY_SITE

    async def _discover(self, filters: SearchFilters) -> List[CandidateContact]:
        terms = " ".join(p for p in [*filters.industries, "companies", filters.keywords, filters.location] if p)
        query = f'{terms} "about us"'
        max_sites = self.settings.max_sites_per_search

        results = await self.fetcher.search(query, max_results=max_sites * 3)
        sites = company_sites(results, max_sites)
        logger.info(f"  🌐 Company sites: {len(sites)} candidate site(s)")

        contacts: List[CandidateContact] = []
        for site in sites:
            contacts.extend(await self._crawl_site(site, filters))
            if len(contacts) >= filters.limit:
                break

        return contacts


def build_default_strategies(
    fetcher: WebFetcher,
    extractor: Optional[ContactExtractor] = None
) -> List[SourceStrategy]:
    """The three real strategies in priority order."""
    extractor = extractor or ContactExtractor()
    return [
        DirectoryStrategy(fetcher, extractor),
        ProfessionalNetworkStrategy(fetcher, extractor),
        CompanySiteStrategy(fetcher, extractor),
    ]


# ========== HELPERS ==========

def build_profile_queries(filters: SearchFilters) -> List[str]:
    """Up to 3 distinct site-scoped profile queries."""
    position = filters.primary_position
    industry = filters.primary_industry
    location = filters.location

    term_sets = [
        [position, industry, location],
        [f'"{position}"' if position else "", f'"{industry}"' if industry else "", location],
        [filters.keywords, position, location],
    ]

    queries = []
    for terms in term_sets:
        text = " ".join(t for t in terms if t)
        if not text:
            continue
        query = f"{text} {PROFILE_SEARCH_SCOPE}"
        if query not in queries:
            queries.append(query)

    if not queries:
        queries.append(f"{DEFAULT_SEARCH_TERMS} {PROFILE_SEARCH_SCOPE}")

    return queries[:MAX_PROFILE_QUERIES]


def company_from_profile_title(title: str) -> Optional[str]:
    """'Jane Doe - CEO - Acme Corp | LinkedIn' -> 'Acme Corp'."""
    if not title:
        return None
    title = title.split('|')[0].strip()
    parts = [p.strip() for p in title.split(' - ')]
    if len(parts) >= 3 and parts[2]:
        return parts[2]
    return None


def parse_directory_listings(html: str) -> List[dict]:
    """Directory `.result` cards -> [{company, address, website}]."""
    soup = BeautifulSoup(html, "lxml")
    listings = []

    for card in soup.select(".result"):
        name_elem = card.select_one(".business-name")
        if not name_elem:
            continue
        address_elem = card.select_one(".adr")
        website_elem = card.select_one(".track-visit-website")
        website = website_elem.get("href", "") if website_elem else ""

        listings.append({
            "company": name_elem.get_text(" ", strip=True),
            "address": address_elem.get_text(" ", strip=True) if address_elem else "",
            "website": website if website.startswith("http") else "",
        })

    return listings


def company_sites(results, max_sites: int) -> List[str]:
    """Search results -> distinct business-looking site roots."""
    sites = []
    seen_hosts = set()

    for result in results:
        parsed = urlparse(result.url)
        host = (parsed.netloc or "").lower()
        domain = host[4:] if host.startswith("www.") else host
        if not domain or domain in seen_hosts:
            continue
        if any(domain == skip or domain.endswith('.' + skip) for skip in SKIP_DOMAINS):
            continue

        seen_hosts.add(domain)
        sites.append(f"{parsed.scheme or 'https'}://{host}")
        if len(sites) >= max_sites:
            break

    return sites


def find_team_links(html: str, base_url: str) -> List[str]:
    """Same-host links whose text or path mentions team/about/leadership/..."""
    soup = BeautifulSoup(html, "lxml")
    base_host = urlparse(base_url).netloc.lower()

    found = []
    seen_urls = {base_url.rstrip('/')}

    for link in soup.find_all('a', href=True):
        href = link.get('href', '')
        text = link.get_text(strip=True).lower()

        # Skip empty or javascript links
        if not href or href.startswith('#') or href.startswith(('javascript:', 'mailto:', 'tel:')):
            continue

        full_url = urljoin(base_url, href).split('#')[0]
        if urlparse(full_url).netloc.lower() != base_host:
            continue

        normalized = full_url.rstrip('/')
        if normalized in seen_urls:
            continue

        path = urlparse(full_url).path.lower()
        for keyword in TEAM_LINK_KEYWORDS:
            if keyword in text or keyword in path:
                seen_urls.add(normalized)

                # Earlier keywords are better; anchor text beats path
                score = 0.7 - (TEAM_LINK_KEYWORDS.index(keyword) * 0.05)
                if keyword in text:
                    score += 0.1
                found.append((score, full_url))
                break

    found.sort(key=lambda x: x[0], reverse=True)
    return [url for _, url in found]
