"""
Contact extraction from a single source (web page, search snippet, profile URL).

Pattern heuristics only, no AI:
1. Name + title co-occurrence ("CEO Jane Doe" / "Jane Doe, CEO")
2. Email addresses in the text (role mailboxes dropped)
3. Profile URL slug ("/in/jane-doe-4a1b") when the text has no name

Context values (company, industry, location) are defaults, never ground truth.
"""

import logging
import random
import re
from dataclasses import dataclass
from typing import Optional, List, Tuple
from urllib.parse import urlparse

from bs4 import BeautifulSoup

from models import CandidateContact, ContactSource
from clients.email_checker import EmailChecker, get_email_checker

logger = logging.getLogger(__name__)

# Maximum text to scan per source
MAX_TEXT_EXTRACT = 30_000

# Email-only records per source (names are guessed from the local part)
MAX_EMAIL_ONLY_CONTACTS = 3

PLACEHOLDER_COMPANY = "Professional Services"
DEFAULT_POSITION = "Professional"

# Senior titles we look for next to a name
_TITLES = r'CEO|CTO|CFO|COO|VP|[Pp]resident|[Dd]irector|[Mm]anager|Lead|[Ff]ounder'
_QUALIFIERS = r'Vice|Managing|Executive|Senior|General|Regional|Sales|Marketing|Technical|Co-'
_TITLE = rf'(?P<title>(?:(?:{_QUALIFIERS})[ ]?)*(?:{_TITLES}))'
# Latin-1 letters so "José Núñez" is a name
_UPPER = "A-ZÀ-ÖØ-Þ"
_LOWER = "a-zß-öø-ÿ"
_NAME_TOKEN = rf"[{_UPPER}][{_LOWER}]+(?:[-'][{_UPPER}]?[{_LOWER}]+)?"
_NAME = rf'(?P<name>{_NAME_TOKEN} {_NAME_TOKEN})'

# "<Title> <Name>" and "<Name> <Title>"
TITLE_NAME_PATTERN = re.compile(rf'\b{_TITLE}\b[ \t]*[:\-–,]?[ \t]*{_NAME}\b')
NAME_TITLE_PATTERN = re.compile(
    rf'\b{_NAME}\s*(?:[,\-–|:]\s*)?(?:(?:is|was)\s+)?(?:(?:the|our)\s+)?{_TITLE}\b'
)

# "... CEO of Acme Corp" / "... at Acme Corp"
COMPANY_PHRASE_PATTERN = re.compile(
    r"[ \t]*(?:of|at|@)[ \t]+(?P<company>[A-Z][\w&.'\-]*(?:[ ]+(?:&[ ]+)?[A-Z][\w&.'\-]*){0,3})"
)
ANY_COMPANY_PHRASE_PATTERN = re.compile(
    r"\b(?:at|@)\s+(?P<company>[A-Z][\w&.'\-]*(?:[ ]+(?:&[ ]+)?[A-Z][\w&.'\-]*){0,3})"
)

EMAIL_PATTERN = re.compile(r'[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}')

# Role mailboxes - not a person
NON_PERSONAL_LOCAL_PARTS = {
    "info", "support", "contact", "noreply", "no-reply", "donotreply",
    "sales", "hello", "admin", "office", "webmaster", "help", "team",
    "jobs", "careers", "press", "privacy", "billing",
}

PLACEHOLDER_EMAIL_DOMAINS = {
    "example.com", "example.org", "test.com", "domain.com", "email.com",
    "yourcompany.com", "company.com", "placeholder.com",
}

# Asset filenames that look like emails ("logo@2x.png")
ASSET_SUFFIXES = ('.png', '.jpg', '.jpeg', '.gif', '.svg', '.webp')

# Tokens that show a "name" match is really page or company text
NAME_STOPWORDS = {
    "the", "our", "about", "contact", "meet", "team", "home", "read", "more",
    "inc", "corp", "llc", "ltd", "company", "group", "solutions", "technologies",
    "services", "chief", "executive", "officer", "vice", "senior", "head",
    "board", "sales", "marketing", "operations", "product", "engineering",
    "managing", "general", "regional", "project", "account", "summit", "news",
    "welcome", "leadership", "founder", "president", "director", "manager", "lead",
}

# First words of place names ("New York", "San Diego")
PLACE_WORDS = {
    "new", "san", "santa", "los", "las", "fort", "saint", "north", "south",
    "east", "west", "upper", "lower", "greater",
}

# Hosts whose domain says nothing about the person's employer
PROFILE_HOSTS = (
    "linkedin.com", "duckduckgo.com", "google.com", "bing.com",
    "facebook.com", "twitter.com", "x.com", "yellowpages.com",
)

# "Director of Sales" names a department, not an employer
DEPARTMENT_WORDS = {
    "sales", "marketing", "engineering", "operations", "product", "finance",
    "business", "technology", "human", "people", "customer", "research",
}

TEAM_SECTION_SELECTOR = "[class*='team'], [class*='staff'], .leadership, [class*='people']"

SOURCE_TAGS = {
    ContactSource.DIRECTORY: "Business Directory",
    ContactSource.PROFESSIONAL_NETWORK: "LinkedIn",
    ContactSource.COMPANY_SITE: "Website",
}


@dataclass
class ExtractionContext:
    """Where a source came from and what the search asked for."""
    source: ContactSource = ContactSource.COMPANY_SITE
    url: Optional[str] = None
    domain: Optional[str] = None
    company: Optional[str] = None
    industry: str = ""
    location: str = ""
    page_title: Optional[str] = None

    def __post_init__(self):
        if not self.domain and self.url:
            self.domain = _host(self.url)


@dataclass
class _PersonMatch:
    name: str
    title: str
    company_phrase: Optional[str] = None


class ContactExtractor:
    """Turns raw text/HTML from one source into candidate contacts."""

    def __init__(self, email_checker: Optional[EmailChecker] = None):
        self.email_checker = email_checker or get_email_checker()

    def extract(self, source_text: str, context: ExtractionContext) -> List[CandidateContact]:
        """Extract every distinct person (plus unmatched emails) from one source."""
        text = (source_text or "")[:MAX_TEXT_EXTRACT]
        if not text.strip() and not _is_profile_url(context.url):
            return []

        emails = self._find_emails(text)
        people = self._find_people(text, context.location)

        contacts: List[CandidateContact] = []
        used_emails = set()

        for person in people:
            first_name, last_name = _split_name(person.name)
            observed = next(
                (e for e in emails if e not in used_emails and _email_matches_name(e, first_name, last_name)),
                None
            )
            if observed:
                used_emails.add(observed)

            contacts.append(self._build_contact(
                first_name=first_name,
                last_name=last_name,
                position=_normalize_title(person.title),
                company=self._resolve_company(context, person.company_phrase),
                observed_email=observed,
                confidence=random.randint(70, 95),
                context=context
            ))

        if not people and _is_profile_url(context.url):
            slug_contact = self._extract_from_slug(text, context)
            if slug_contact:
                contacts.append(slug_contact)

        leftover = [e for e in emails if e not in used_emails]
        for email in leftover[:MAX_EMAIL_ONLY_CONTACTS]:
            contacts.append(self._contact_from_email(email, context))

        if contacts:
            logger.debug(f"Extracted {len(contacts)} contact(s) from {context.url or 'text'}")
        return contacts

    def extract_from_html(self, html: str, context: ExtractionContext) -> List[CandidateContact]:
        """Parse HTML, fill page title from <title>/<h1>, then run text extraction."""
        if not html:
            return []

        soup = BeautifulSoup(html, "lxml")

        if not context.page_title:
            title = soup.title.get_text(strip=True) if soup.title else ""
            if not title:
                h1 = soup.find("h1")
                title = h1.get_text(strip=True) if h1 else ""
            context.page_title = title or None

        for elem in soup(["script", "style", "nav", "noscript", "svg", "iframe"]):
            elem.decompose()

        # Team cards: "<h3>Jane Doe</h3><p>CEO</p>" -> "Jane Doe, CEO"
        card_lines = []
        for section in soup.select(TEAM_SECTION_SELECTOR)[:5]:
            for heading in section.find_all(["h2", "h3", "h4", "h5", "strong"]):
                name = heading.get_text(" ", strip=True)
                sibling = heading.find_next_sibling()
                if name and sibling is not None:
                    card_lines.append(f"{name}, {sibling.get_text(' ', strip=True)}")

        # Newline separators keep the rest of the page's blocks apart
        body = soup.body or soup
        text = body.get_text(separator="\n", strip=True)
        if card_lines:
            text = "\n".join(card_lines) + "\n" + text
        return self.extract(text, context)

    def extract_from_profile_url(
        self,
        url: str,
        snippet: str,
        context: ExtractionContext
    ) -> List[CandidateContact]:
        """
        Professional-network path: one profile page = one person.

        The URL slug names the profile owner. A person found in the snippet is
        kept only when it is that owner; anyone else the snippet mentions
        ("reports to CTO Bob Brown") is dropped and the owner is built from
        the slug, with title and company taken from the snippet.
        """
        clean_url = clean_profile_url(url)
        if not clean_url:
            return []

        context.url = clean_url
        context.domain = _host(clean_url)
        contacts = self.extract(snippet or "", context)

        slug_first, slug_last = _name_from_slug(clean_url)
        if slug_first:
            slug_names = {slug_first.lower(), slug_last.lower()}
            owner = next(
                (c for c in contacts if {c.first_name.lower(), c.last_name.lower()} & slug_names),
                None
            ) or self._extract_from_slug(snippet or "", context)
        else:
            owner = contacts[0] if contacts else None

        if owner is None:
            return []
        return [owner.model_copy(update={"linkedin_url": clean_url})]

    # ========== HELPERS ==========

    def _find_emails(self, text: str) -> List[str]:
        found = []
        for match in EMAIL_PATTERN.findall(text):
            email = match.lower().strip('.')
            if len(email) >= 50 or email in found:
                continue
            local, domain = email.split('@', 1)
            if local.split('+')[0] in NON_PERSONAL_LOCAL_PARTS or local.startswith('noreply'):
                continue
            if domain in PLACEHOLDER_EMAIL_DOMAINS or 'placeholder' in domain:
                continue
            if domain.endswith(ASSET_SUFFIXES):
                continue
            found.append(email)
        return found

    def _find_people(self, text: str, location: str = "") -> List[_PersonMatch]:
        """All name/title matches in text order; first match wins per name and per title."""
        matches: List[Tuple[int, Tuple[int, int], _PersonMatch]] = []
        place_tokens = {t.lower() for t in re.findall(r'[^\W\d_]+', location or "")}

        for pattern in (NAME_TITLE_PATTERN, TITLE_NAME_PATTERN):
            for m in pattern.finditer(text):
                name = m.group('name')
                if not _is_plausible_name(name, place_tokens):
                    continue
                company_match = COMPANY_PHRASE_PATTERN.match(text, m.end())
                company = _company_from_match(company_match)
                matches.append((m.start(), m.span('title'), _PersonMatch(
                    name=name,
                    title=m.group('title'),
                    company_phrase=company
                )))

        matches.sort(key=lambda x: x[0])

        # "CEO John Smith, CTO Mary Jones": CTO belongs to Mary, not John
        seen = set()
        claimed_titles: List[Tuple[int, int]] = []
        people = []
        for _, (start, end), person in matches:
            key = person.name.lower()
            if key in seen or any(start < c_end and c_start < end for c_start, c_end in claimed_titles):
                continue
            seen.add(key)
            claimed_titles.append((start, end))
            people.append(person)
        return people

    def _extract_from_slug(self, text: str, context: ExtractionContext) -> Optional[CandidateContact]:
        first_name, last_name = _name_from_slug(context.url)
        if not first_name:
            return None

        company_match = ANY_COMPANY_PHRASE_PATTERN.search(text)
        company_phrase = _company_from_match(company_match)

        return self._build_contact(
            first_name=first_name,
            last_name=last_name,
            position=_position_from_text(text),
            company=self._resolve_company(context, company_phrase),
            observed_email=None,
            confidence=random.randint(70, 75),
            context=context
        )

    def _contact_from_email(self, email: str, context: ExtractionContext) -> CandidateContact:
        local = email.split('@')[0]
        parts = [p for p in re.split(r'[._-]', local) if p]
        first_name = _capitalize(parts[0]) if parts else "John"
        last_name = _capitalize(parts[1]) if len(parts) > 1 else "Doe"
        company = self._resolve_company(context, None)

        return CandidateContact(
            first_name=first_name,
            last_name=last_name,
            email=email,
            company=company,
            position=DEFAULT_POSITION,  # Can't tell the role from an address
            industry=context.industry or "Business",
            location=context.location or "Unknown",
            website=_website_for(context),
            source=context.source,
            confidence=60,
            tags=_tags_for(context),
            summary=f"Professional at {company} in {context.industry or 'business'}."
        )

    def _build_contact(
        self,
        first_name: str,
        last_name: str,
        position: str,
        company: str,
        observed_email: Optional[str],
        confidence: int,
        context: ExtractionContext
    ) -> CandidateContact:
        email = observed_email
        alternatives: List[str] = []
        inferred = False

        if not email:
            domain_hint = context.domain if context.domain and not _is_profile_host(context.domain) else company
            ranked = self.email_checker.rank_candidates(first_name, last_name, domain_hint)
            if ranked:
                email = ranked[0].email
                alternatives = [c.email for c in ranked[1:]]
                inferred = True

        industry = context.industry or "Business"
        return CandidateContact(
            first_name=first_name,
            last_name=last_name,
            email=email,
            email_inferred=inferred,
            alternative_emails=alternatives,
            company=company,
            position=position,
            industry=industry,
            location=context.location or "Unknown",
            website=_website_for(context),
            source=context.source,
            confidence=confidence,
            tags=_tags_for(context),
            summary=f"{position} at {company} in {industry}."
        )

    def _resolve_company(self, context: ExtractionContext, company_phrase: Optional[str]) -> str:
        """Context company > in-text phrase > page title > domain > placeholder."""
        if context.company:
            return context.company
        if company_phrase:
            return company_phrase

        if context.page_title:
            title = re.split(r'\s[|\-–—:]\s|\|', context.page_title)[0].strip()
            if title and len(title) <= 50:
                return title

        if context.domain and not _is_profile_host(context.domain):
            base = context.domain.split('.')[0]
            return " ".join(_capitalize(p) for p in re.split(r'[-_]', base) if p)

        return PLACEHOLDER_COMPANY


# ========== MODULE HELPERS ==========

def _host(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    try:
        netloc = urlparse(url if '://' in url else f"https://{url}").netloc.lower()
    except ValueError:
        return None
    return netloc.replace('www.', '', 1) if netloc.startswith('www.') else (netloc or None)


def _is_profile_host(domain: str) -> bool:
    return any(domain == h or domain.endswith('.' + h) for h in PROFILE_HOSTS)


def _is_profile_url(url: Optional[str]) -> bool:
    return clean_profile_url(url) is not None


def clean_profile_url(url: Optional[str]) -> Optional[str]:
    """Strip query/fragment; None unless it's a personal profile URL."""
    if not url:
        return None
    clean = url.split('?')[0].split('#')[0].rstrip('/')
    if 'linkedin.com/in/' not in clean or '/dir/' in clean or '/company/' in clean:
        return None
    if len(clean) >= 200:
        return None
    return clean


def _name_from_slug(url: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """'.../in/jane-doe-4a1b2c' -> ('Jane', 'Doe')."""
    clean = clean_profile_url(url)
    if not clean:
        return None, None

    slug = clean.split('/in/')[-1].split('/')[0]
    if len(slug) < 3:
        return None, None

    parts = [p for p in re.split(r'[^A-Za-z0-9]+', slug) if len(p) > 1 and p.isalpha()]
    if not parts:
        return None, None

    first_name = _capitalize(parts[0])
    last_name = _capitalize(parts[1]) if len(parts) > 1 else "Doe"
    return first_name, last_name


def _company_from_match(match: Optional[re.Match]) -> Optional[str]:
    """'of Acme Corp.' -> 'Acme Corp'; department phrases ('VP of Sales') are not companies."""
    if not match:
        return None
    # "Acme Corp. She joined..." ends at the sentence break
    company = re.split(r'\.\s', match.group('company'))[0].rstrip('.,;')
    if not company or company.split()[0].lower() in DEPARTMENT_WORDS:
        return None
    return company or None


def _split_name(name: str) -> Tuple[str, str]:
    parts = name.split()
    first_name = parts[0] if parts else "John"
    last_name = " ".join(parts[1:]) if len(parts) > 1 else "Doe"
    return first_name, last_name


def _is_plausible_name(name: str, place_tokens=frozenset()) -> bool:
    tokens = [t.lower() for t in name.split()]
    if tokens[0] in PLACE_WORDS or any(t in NAME_STOPWORDS for t in tokens):
        return False
    return not all(t in place_tokens for t in tokens)


def _email_matches_name(email: str, first_name: str, last_name: str) -> bool:
    local = email.split('@')[0]
    first = re.sub(r'[^a-z]', '', first_name.lower())
    last = re.sub(r'[^a-z]', '', last_name.lower())
    return (len(first) > 1 and first in local) or (len(last) > 1 and last in local)


def _normalize_title(title: str) -> str:
    return " ".join(w if w.isupper() else w.capitalize() for w in title.split())


def _position_from_text(text: str) -> str:
    """Earliest senior title mentioned anywhere in the text."""
    lower = text.lower()
    found = []
    for title in ("CEO", "CTO", "CFO", "COO", "Vice President", "President", "Director",
                  "Manager", "VP", "Founder", "Owner"):
        m = re.search(rf'\b{re.escape(title.lower())}\b', lower)
        if m:
            found.append((m.start(), title))
    return min(found)[1] if found else DEFAULT_POSITION


def _capitalize(value: str) -> str:
    if not value:
        return "Unknown"
    return value[0].upper() + value[1:].lower()


def _website_for(context: ExtractionContext) -> Optional[str]:
    if not context.url or (context.domain and _is_profile_host(context.domain)):
        return None
    return context.url


def _tags_for(context: ExtractionContext) -> List[str]:
    tags = ["Real Contact"]
    label = SOURCE_TAGS.get(context.source)
    if label:
        tags.append(label)
    return tags
