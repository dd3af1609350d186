import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List

from pydantic import BaseModel, Field, field_validator


# Result cap for a single discovery request
MAX_LIMIT = 50
DEFAULT_LIMIT = 20

# Input size limits to prevent abuse
MAX_FIELD_LENGTH = 1000
MAX_FILTER_ITEMS = 20


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class ContactSource(str, Enum):
    DIRECTORY = "directory"
    PROFESSIONAL_NETWORK = "professional-network"
    COMPANY_SITE = "company-site"
    SYNTHETIC = "synthetic"
    STATIC = "static-fallback"


GENERATED_SOURCES = {ContactSource.SYNTHETIC, ContactSource.STATIC}


# Discovery Input (from API / caller)
class SearchFilters(BaseModel):
    industries: List[str] = Field(default_factory=list, max_length=MAX_FILTER_ITEMS)
    positions: List[str] = Field(default_factory=list, max_length=MAX_FILTER_ITEMS)
    location: str = Field(default="", max_length=MAX_FIELD_LENGTH)
    company_size: str = Field(default="", max_length=MAX_FIELD_LENGTH)
    keywords: str = Field(default="", max_length=MAX_FIELD_LENGTH)
    limit: int = Field(default=DEFAULT_LIMIT, ge=1)

    @field_validator('industries', 'positions')
    @classmethod
    def unique_terms(cls, v: List[str]) -> List[str]:
        """Strip blanks and drop case-insensitive duplicates (first one wins)."""
        seen = set()
        terms = []
        for term in v:
            term = (term or "").strip()
            if term and term.lower() not in seen:
                seen.add(term.lower())
                terms.append(term)
        return terms

    @field_validator('location', 'company_size', 'keywords')
    @classmethod
    def strip_text(cls, v: str) -> str:
        return (v or "").strip()

    @field_validator('limit')
    @classmethod
    def clamp_limit(cls, v: int) -> int:
        return min(v, MAX_LIMIT)

    @property
    def primary_industry(self) -> str:
        return self.industries[0] if self.industries else ""

    @property
    def primary_position(self) -> str:
        return self.positions[0] if self.positions else ""

    @property
    def has_criteria(self) -> bool:
        return bool(self.industries or self.positions or self.keywords)


# Prospect before validation/scoring (created by a source strategy)
class CandidateContact(BaseModel):
    id: str = Field(default_factory=_new_id)
    first_name: str = "John"
    last_name: str = "Doe"
    email: Optional[str] = None
    email_inferred: bool = False  # True = guessed permutation, not observed
    alternative_emails: List[str] = Field(default_factory=list)
    company: str = ""
    position: str = ""
    industry: str = ""
    location: str = ""
    linkedin_url: Optional[str] = None
    website: Optional[str] = None
    source: ContactSource
    confidence: int = Field(default=50, ge=0, le=100)
    tags: List[str] = Field(default_factory=list)
    summary: str = ""
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def dedup_key(self) -> str:
        """Normalized email if present, else normalized (first, last, company)."""
        if self.email and self.email.strip():
            return f"email:{self.email.strip().lower()}"
        return "name:" + "|".join(
            part.strip().lower() for part in (self.first_name, self.last_name, self.company)
        )


class EmailValidation(BaseModel):
    is_valid: bool
    reason: str
    confidence: int = Field(ge=0, le=100)


class EmailCandidate(BaseModel):
    email: str
    score: int
    pattern_name: str


# Prospect after dedup, validation and scoring (owned by the orchestrator)
class ScoredProspect(CandidateContact):
    email_validation: EmailValidation
    score: int = Field(ge=0, le=100)
    validated: bool = False

    @property
    def is_generated(self) -> bool:
        return self.source in GENERATED_SOURCES


# Sales Intelligence (generated on demand, never cached)
class InsightBundle(BaseModel):
    talking_points: List[str] = Field(default_factory=list)
    pain_points: List[str] = Field(default_factory=list)
    outreach_strategy: str = ""
    company_insights: str = ""
    personalization_data: str = ""


class OutreachChannel(str, Enum):
    EMAIL = "email"
    LINKEDIN = "linkedin"
    PHONE = "phone"


class OutreachTone(str, Enum):
    PROFESSIONAL = "professional"
    CASUAL = "casual"
    DIRECT = "direct"


class OutreachMessage(BaseModel):
    content: str
    channel: OutreachChannel
    tone: OutreachTone
    objective: str
    generated_at: datetime = Field(default_factory=_utcnow)


# Contact payload for on-demand insight/outreach requests
class ContactProfile(BaseModel):
    first_name: str = Field(..., max_length=MAX_FIELD_LENGTH)
    last_name: str = Field(default="", max_length=MAX_FIELD_LENGTH)
    company: str = Field(default="", max_length=MAX_FIELD_LENGTH)
    position: str = Field(default="", max_length=MAX_FIELD_LENGTH)
    industry: str = Field(default="", max_length=MAX_FIELD_LENGTH)
    location: str = Field(default="", max_length=MAX_FIELD_LENGTH)
    email: Optional[str] = Field(default=None, max_length=MAX_FIELD_LENGTH)


class OutreachRequest(BaseModel):
    contact: ContactProfile
    channel: OutreachChannel
    tone: OutreachTone = OutreachTone.PROFESSIONAL
    objective: str = Field(default="introductory meeting", max_length=MAX_FIELD_LENGTH)


# Outreach for a stored prospect (contact comes from the store)
class StoredOutreachRequest(BaseModel):
    channel: OutreachChannel
    tone: OutreachTone = OutreachTone.PROFESSIONAL
    objective: str = Field(default="introductory meeting", max_length=MAX_FIELD_LENGTH)


class ProspectInsights(BaseModel):
    prospect_id: str
    prospect: ContactProfile
    insights: InsightBundle


# Batch re-scoring of stored prospects
class ScoreRequest(BaseModel):
    prospect_ids: List[str] = Field(..., min_length=1, max_length=MAX_LIMIT)


class ScoreMethod(str, Enum):
    LLM = "llm"
    HEURISTIC = "heuristic"  # Same formula as discovery ranking


class ProspectScore(BaseModel):
    prospect_id: str
    name: str
    company: str = ""
    position: str = ""
    score: int = Field(ge=0, le=100)
    method: ScoreMethod


class ScoreResult(BaseModel):
    scored_prospects: List[ProspectScore] = Field(default_factory=list)
    total: int = 0
    missing_ids: List[str] = Field(default_factory=list)
    timestamp_utc: datetime = Field(default_factory=_utcnow)


class FallbackTier(str, Enum):
    REAL = "real"
    SYNTHETIC = "synthetic"
    STATIC = "static"


# Final Discovery Result
class DiscoveryMetadata(BaseModel):
    total: int = 0
    new_count: int = 0
    generated: bool = False
    timestamp_utc: datetime = Field(default_factory=_utcnow)
    strategy_used: Optional[str] = None  # First strategy that yielded candidates
    fallback_tier: FallbackTier = FallbackTier.REAL
    strategies_tried: List[str] = Field(default_factory=list)

    # Non-fatal issues (strategy timeouts, generator failures)
    warnings: List[str] = Field(default_factory=list)


class DiscoveryResult(BaseModel):
    prospects: List[ScoredProspect] = Field(default_factory=list)
    metadata: DiscoveryMetadata = Field(default_factory=DiscoveryMetadata)
