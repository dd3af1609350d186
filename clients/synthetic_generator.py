"""
Generated prospects for when no real source yields anything.

Two tiers, both clearly labelled so they are never mistaken for real data:
- synthetic: plausible records from the text-generation service ("AI Generated")
- static: three fixed example records ("Demo Data"), the final floor
"""

import logging
import random
import re
from typing import Optional, List, Any

from models import SearchFilters, CandidateContact, ContactSource
from clients.llm_client import LLMClient, LLMError, get_llm_client, parse_json_response
from utils.cost_tracker import track_llm

logger = logging.getLogger(__name__)

SYNTHETIC_TAGS = ["AI Generated", "New Prospect"]
STATIC_TAGS = ["Demo Data"]

SYNTHETIC_PROMPT = """Generate realistic B2B prospect data for a sales prospecting search.

Filters:
- Industries: {industries}
- Positions: {positions}
- Location: {location}
- Company size: {company_size}
- Keywords: {keywords}

Create {count} realistic prospects. For each give: firstName, lastName, email
(first.last@company.com style), company, position (matching the position filters),
industry, location (near the given location) and a 2-3 sentence professional summary.

Return ONLY a JSON array of objects, no other text."""

MAX_SYNTHETIC_COUNT = 10


class SyntheticGenerationError(Exception):
    """The synthetic tier produced nothing usable."""


class SyntheticGenerator:
    """Builds generated prospect records from filters."""

    def __init__(self, llm_client: Optional[LLMClient] = None):
        self.llm_client = llm_client or get_llm_client()

    async def generate(self, filters: SearchFilters) -> List[CandidateContact]:
        """
        Ask the text-generation service for plausible prospects.

        Raises SyntheticGenerationError on service failure, unparseable
        output or an empty list.
        """
        count = max(3, min(filters.limit, MAX_SYNTHETIC_COUNT))
        prompt = SYNTHETIC_PROMPT.format(
            industries=", ".join(filters.industries) or "any",
            positions=", ".join(filters.positions) or "decision makers",
            location=filters.location or "United States",
            company_size=filters.company_size or "any",
            keywords=filters.keywords or "none",
            count=count
        )

        try:
            response = await self.llm_client.call(prompt, temperature=0.8, max_tokens=2000)
            track_llm("synthetic_prospects")
        except LLMError as e:
            track_llm("synthetic_prospects", success=False)
            raise SyntheticGenerationError(f"text generation unavailable: {e}") from e

        try:
            data = parse_json_response(response.content)
        except ValueError as e:
            raise SyntheticGenerationError(f"unparseable output: {e}") from e

        # Some responses wrap the array: {"prospects": [...]}
        if isinstance(data, dict):
            data = next((v for v in data.values() if isinstance(v, list)), [])
        if not isinstance(data, list):
            raise SyntheticGenerationError("output is not a list")

        contacts = [self._to_contact(item, filters) for item in data if isinstance(item, dict)]
        if not contacts:
            raise SyntheticGenerationError("empty list")

        logger.info(f"🤖 Generated {len(contacts)} synthetic prospect(s)")
        return contacts

    def _to_contact(self, item: dict, filters: SearchFilters) -> CandidateContact:
        first_name = _text(_pick(item, "firstName", "first_name")) or "John"
        last_name = _text(_pick(item, "lastName", "last_name")) or "Doe"
        company = _text(item.get("company")) or "Tech Corp"
        position = _text(_pick(item, "position", "title")) or filters.primary_position or "Manager"
        industry = _text(item.get("industry")) or filters.primary_industry or "Technology"
        location = _text(item.get("location")) or filters.location or "San Francisco, CA"

        email = _text(item.get("email"))
        if not email:
            email = f"{_slug(first_name)}.{_slug(last_name)}@example.com"

        return CandidateContact(
            first_name=first_name,
            last_name=last_name,
            email=email,
            company=company,
            position=position,
            industry=industry,
            location=location,
            linkedin_url=f"https://linkedin.com/in/{_slug(first_name)}-{_slug(last_name)}",
            source=ContactSource.SYNTHETIC,
            confidence=random.randint(80, 99),  # Label says synthetic; confidence is cosmetic
            tags=list(SYNTHETIC_TAGS),
            summary=_text(item.get("summary")) or "Experienced professional in the industry."
        )

    def static_examples(self, filters: SearchFilters) -> List[CandidateContact]:
        """Three fixed demo records; industry/location/position follow the filters."""
        industry = filters.primary_industry or "Technology"
        location = filters.location or "San Francisco"
        position = filters.primary_position or "CEO"

        examples = [
            ("Sarah", "Johnson", "sarah.johnson@techstartup.com", "TechStartup Inc", "CEO",
             "https://techstartup.com"),
            ("Michael", "Chen", "michael.chen@innovativesolutions.com", "Innovative Solutions", position,
             "https://innovativesolutions.com"),
            ("Emily", "Rodriguez", "emily.rodriguez@futuretech.io", "FutureTech", "CTO",
             "https://futuretech.io"),
        ]

        return [
            CandidateContact(
                first_name=first,
                last_name=last,
                email=email,
                company=company,
                position=title,
                industry=industry,
                location=location,
                linkedin_url=f"https://linkedin.com/in/{first.lower()}-{last.lower()}",
                website=website,
                source=ContactSource.STATIC,
                confidence=50,
                tags=list(STATIC_TAGS),
                summary=f"{title} at {company}. Example record, not a real contact."
            )
            for first, last, email, company, title, website in examples
        ]


def _pick(item: dict, *keys: str) -> Any:
    for key in keys:
        if item.get(key):
            return item[key]
    return None


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _slug(value: str) -> str:
    return re.sub(r'[^a-z0-9]', '', value.lower()) or "john"
