"""
Email plausibility checks for discovered prospects.

- Format check (RFC-lite regex)
- Domain reachability via MX lookup (cached per domain, 24h)
- Pattern scoring + ranked permutations when no email was observed

DNS failures count as "no mail record". A transient DNS glitch and a
dead domain look the same here; that approximation is accepted.
"""

import asyncio
import logging
import re
import threading
import unicodedata
from dataclasses import dataclass
from datetime import datetime, timedelta
from functools import lru_cache
from typing import Optional, List, Dict, Callable, Awaitable

import dns.asyncresolver

from config import get_settings
from models import EmailValidation, EmailCandidate

logger = logging.getLogger(__name__)

EMAIL_REGEX = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')

REASON_INVALID_FORMAT = "invalid format"
REASON_NO_MX = "domain has no mail record"
REASON_VALID = "valid"

# Public free-mail providers - business contacts rarely use them
FREE_MAIL_DOMAINS = {'gmail.com', 'yahoo.com', 'hotmail.com', 'outlook.com'}

# Legal suffixes stripped when guessing a domain from a company name
COMPANY_SUFFIX_REGEX = re.compile(r'(inc|corp|llc|ltd)$')

VALIDATION_BATCH_SIZE = 10

# (domain) -> reachable; injectable for tests
MXResolver = Callable[[str], Awaitable[bool]]


@dataclass
class _DomainCacheEntry:
    reachable: bool
    checked_at: datetime


class EmailChecker:
    """
    Validates email addresses and ranks guessed permutations.

    The per-domain MX cache is the only state shared across requests.
    Keys are domains (not emails) so growth stays small.
    """

    def __init__(
        self,
        cache_ttl: Optional[timedelta] = None,
        resolver: Optional[MXResolver] = None,
        lookup_timeout: Optional[float] = None
    ):
        settings = get_settings()
        self.cache_ttl = cache_ttl or timedelta(hours=settings.mx_cache_ttl_hours)
        self.lookup_timeout = lookup_timeout or settings.dns_timeout
        self._resolver = resolver or self._resolve_mx
        self._cache: Dict[str, _DomainCacheEntry] = {}
        self._lock = threading.Lock()

    # ========== FORMAT + DOMAIN ==========

    def check_format(self, email: Optional[str]) -> bool:
        """Syntax check; fails closed on empty input."""
        if not email:
            return False
        return bool(EMAIL_REGEX.match(email.strip()))

    async def check_domain_reachable(self, domain: str) -> bool:
        """True iff the domain has an MX record (cached per domain)."""
        domain = (domain or "").strip().lower()
        if not domain:
            return False

        with self._lock:
            cached = self._cache.get(domain)
        if cached and datetime.now() - cached.checked_at < self.cache_ttl:
            return cached.reachable

        try:
            reachable = await self._resolver(domain)
        except Exception as e:
            logger.debug(f"MX lookup failed for {domain}: {e}")
            reachable = False

        with self._lock:
            self._cache[domain] = _DomainCacheEntry(reachable=reachable, checked_at=datetime.now())

        return reachable

    async def _resolve_mx(self, domain: str) -> bool:
        try:
            answers = await dns.asyncresolver.resolve(domain, "MX", lifetime=self.lookup_timeout)
            return len(answers) > 0
        except Exception as e:
            logger.debug(f"No MX record for {domain}: {e}")
            return False

    async def validate(self, email: Optional[str]) -> EmailValidation:
        """Format + MX check. Confidence: 75 valid, 25 no MX, 0 bad format."""
        if not self.check_format(email):
            return EmailValidation(is_valid=False, reason=REASON_INVALID_FORMAT, confidence=0)

        domain = email.strip().split('@')[1]
        if await self.check_domain_reachable(domain):
            return EmailValidation(is_valid=True, reason=REASON_VALID, confidence=75)

        return EmailValidation(is_valid=False, reason=REASON_NO_MX, confidence=25)

    async def validate_many(self, emails: List[str]) -> List[EmailValidation]:
        """Validate in small batches; one failing lookup doesn't sink the batch."""
        results: List[EmailValidation] = []

        for i in range(0, len(emails), VALIDATION_BATCH_SIZE):
            batch = emails[i:i + VALIDATION_BATCH_SIZE]
            outcomes = await asyncio.gather(
                *(self.validate(email) for email in batch),
                return_exceptions=True
            )
            for email, outcome in zip(batch, outcomes):
                if isinstance(outcome, Exception):
                    logger.warning(f"Validation error for {email}: {outcome}")
                    results.append(EmailValidation(is_valid=False, reason=REASON_INVALID_FORMAT, confidence=0))
                else:
                    results.append(outcome)

        return results

    def clear_expired(self) -> int:
        """Drop expired cache entries. Returns number removed."""
        now = datetime.now()
        with self._lock:
            expired = [d for d, entry in self._cache.items() if now - entry.checked_at >= self.cache_ttl]
            for domain in expired:
                del self._cache[domain]
        return len(expired)

    # ========== PATTERN SCORING ==========

    def score_pattern(
        self,
        email: str,
        first_name: str,
        last_name: str,
        company: Optional[str] = None
    ) -> int:
        """
        Heuristic 0..100 likelihood that a guessed email is the real one.

        +30 per name fragment in the local part, template bonus (first.last +25,
        first / firstlast +20), +15 domain matches company, -10 free-mail domain.
        """
        if not email or '@' not in email or not first_name or not last_name:
            return 0

        local, domain = email.lower().split('@', 1)
        first = _name_token(first_name)
        last = _name_token(last_name)
        if not first or not last:
            return 0

        score = 0
        if first in local:
            score += 30
        if last in local:
            score += 30

        if local == f"{first}.{last}":
            score += 25
        elif local == first:
            score += 20
        elif local == f"{first}{last}":
            score += 20

        if company:
            company_word = re.sub(r'[^a-z]', '', company.lower())
            domain_base = re.sub(r'\.(com|org|net)$', '', domain)
            if company_word and domain_base and (company_word in domain or domain_base in company_word):
                score += 15

        if domain in FREE_MAIL_DOMAINS:
            score -= 10

        return min(100, max(0, score))

    def rank_candidates(
        self,
        first_name: str,
        last_name: str,
        company_or_domain: Optional[str]
    ) -> List[EmailCandidate]:
        """Generate the standard permutations and return them best-first."""
        first = _name_token(first_name)
        last = _name_token(last_name)
        if not first or not last:
            return []

        domain = _resolve_domain(company_or_domain)
        if not domain:
            return []

        company = None if _looks_like_domain(company_or_domain) else company_or_domain

        permutations = [
            ("first.last", f"{first}.{last}"),
            ("first", first),
            ("last", last),
            ("firstlast", f"{first}{last}"),
            ("first_last", f"{first}_{last}"),
            ("flast", f"{first[0]}{last}"),
            ("firstl", f"{first}{last[0]}"),
            ("first.l", f"{first}.{last[0]}"),
        ]

        seen = set()
        candidates = []
        for pattern_name, local in permutations:
            email = f"{local}@{domain}"
            if email in seen:
                continue
            seen.add(email)
            candidates.append(EmailCandidate(
                email=email,
                score=self.score_pattern(email, first_name, last_name, company or domain),
                pattern_name=pattern_name
            ))

        # Stable: equal scores keep permutation order
        candidates.sort(key=lambda c: c.score, reverse=True)
        return candidates


def _name_token(name: Optional[str]) -> str:
    # "Núñez" -> "nunez"
    folded = unicodedata.normalize("NFKD", name or "").encode("ascii", "ignore").decode()
    return re.sub(r'[^a-z]', '', folded.lower())


def _looks_like_domain(value: Optional[str]) -> bool:
    value = (value or "").strip()
    return bool(value) and ' ' not in value and '.' in value


def _resolve_domain(company_or_domain: Optional[str]) -> Optional[str]:
    """Use a domain as-is, or guess '<company>.com' from a company name."""
    value = (company_or_domain or "").strip().lower()
    if not value:
        return None

    if _looks_like_domain(value):
        value = re.sub(r'^https?://', '', value)
        value = value.split('/')[0]
        return re.sub(r'^www\.', '', value)

    return guess_domain(value)


def guess_domain(company: Optional[str]) -> Optional[str]:
    """'Acme Corp' -> 'acme.com'."""
    base = re.sub(r'[^a-z0-9]', '', (company or "").lower())
    base = COMPANY_SUFFIX_REGEX.sub('', base)
    if not base:
        return None
    return f"{base}.com"


@lru_cache
def get_email_checker() -> EmailChecker:
    """Process-wide checker so the MX cache is shared across requests."""
    return EmailChecker()
