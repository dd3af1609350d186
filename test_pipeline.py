"""
Orchestrator tests: strategy chain, finalization and the fallback tiers.
Strategies and generators are fakes; DNS goes through FakeResolver.
"""
import json

import pytest

from config import get_settings
from models import (
    SearchFilters, CandidateContact, EmailValidation, ContactSource, FallbackTier
)
from pipeline import DiscoveryOrchestrator, compute_score, deduplicate, discover_prospects
from clients.contact_extractor import ContactExtractor, ExtractionContext
from clients.strategies import SourceStrategy
from clients.synthetic_generator import SyntheticGenerator
from utils.stats import get_discovery_stats
from conftest import FakeStrategy, FakeLLM, FailingGenerator


def make_candidate(first="Jane", last="Doe", company="Acme", email=None, **kwargs):
    values = dict(
        first_name=first,
        last_name=last,
        company=company,
        email=email if email is not None else f"{first}.{last}@{company}.com".lower(),
        position="Analyst",
        source=ContactSource.COMPANY_SITE,
        confidence=80,
    )
    values.update(kwargs)
    return CandidateContact(**values)


def make_orchestrator(email_checker, strategies, generator=None, settings=None):
    return DiscoveryOrchestrator(
        strategy_factory=lambda fetcher: strategies,
        email_checker=email_checker,
        synthetic_generator=generator or FailingGenerator(),
        settings=settings
    )


# ========== SCORING ==========

def test_compute_score_components():
    no_email = EmailValidation(is_valid=False, reason="invalid format", confidence=0)

    assert compute_score(make_candidate(position="Analyst"), no_email) == 66
    assert compute_score(make_candidate(position="Director of Sales"), no_email) == 86
    assert compute_score(make_candidate(position="Analyst", website="https://acme.com"), no_email) == 76
    # Placeholder sites earn nothing
    assert compute_score(make_candidate(position="Analyst", website="https://example.com"), no_email) == 66


def test_compute_score_is_clamped():
    valid = EmailValidation(is_valid=True, reason="valid", confidence=75)
    top = make_candidate(
        position="CEO",
        website="https://acme.com",
        source=ContactSource.PROFESSIONAL_NETWORK,
        confidence=100
    )

    assert compute_score(top, valid) == 100


def test_deduplicate_is_idempotent():
    candidates = [
        make_candidate(email="Jane.Doe@Acme.com"),
        make_candidate(email="jane.doe@acme.com "),
        make_candidate(first="John", last="Smith", email=""),
        make_candidate(first="john", last="SMITH", email=""),
        make_candidate(first="John", last="Smith", company="Globex", email=""),
    ]

    once = deduplicate(candidates)
    twice = deduplicate(once)

    assert [c.id for c in once] == [candidates[0].id, candidates[2].id, candidates[4].id]
    assert [c.id for c in twice] == [c.id for c in once]


# ========== STRATEGY CHAIN ==========

@pytest.mark.asyncio
async def test_first_yielding_strategy_wins(email_checker):
    empty = FakeStrategy("directory")
    hit = FakeStrategy("professional_network", results=[make_candidate()])
    never = FakeStrategy("company_site", results=[make_candidate(first="Other")])
    orchestrator = make_orchestrator(email_checker, [empty, hit, never])

    result = await orchestrator.discover(SearchFilters())

    assert (empty.calls, hit.calls, never.calls) == (1, 1, 0)
    meta = result.metadata
    assert meta.strategy_used == "professional_network"
    assert meta.strategies_tried == ["directory", "professional_network"]
    assert meta.fallback_tier == FallbackTier.REAL
    assert meta.generated is False
    assert meta.total == 1
    assert result.prospects[0].validated is True


@pytest.mark.asyncio
async def test_failing_strategy_does_not_stop_chain(email_checker):
    broken = FakeStrategy("directory", error=RuntimeError("boom"))
    hit = FakeStrategy("company_site", results=[make_candidate()])
    orchestrator = make_orchestrator(email_checker, [broken, hit])

    result = await orchestrator.discover(SearchFilters())

    assert result.metadata.strategy_used == "company_site"
    assert len(result.prospects) == 1


@pytest.mark.asyncio
async def test_results_ranked_and_truncated(email_checker):
    candidates = [
        make_candidate(first="Low", position="Analyst", confidence=10),
        make_candidate(first="High", position="CEO", confidence=90),
        make_candidate(first="Mid", position="Analyst", confidence=90),
        make_candidate(first="Also", position="Director", confidence=50),
        make_candidate(first="Last", position="Clerk", confidence=0),
    ]
    orchestrator = make_orchestrator(email_checker, [FakeStrategy("company_site", results=candidates)])

    result = await orchestrator.discover(SearchFilters(limit=3))

    scores = [p.score for p in result.prospects]
    assert len(result.prospects) == 3
    assert scores == sorted(scores, reverse=True)
    assert result.prospects[0].first_name == "High"
    assert result.metadata.total == 3
    assert all(20 <= s <= 100 for s in scores)


@pytest.mark.asyncio
async def test_duplicates_merged_before_scoring(email_checker):
    candidates = [make_candidate(), make_candidate(email="JANE.DOE@acme.com")]
    orchestrator = make_orchestrator(email_checker, [FakeStrategy("company_site", results=candidates)])

    result = await orchestrator.discover(SearchFilters())

    assert len(result.prospects) == 1
    assert result.prospects[0].id == candidates[0].id


@pytest.mark.asyncio
async def test_invalid_email_upgraded_from_alternatives(email_checker):
    candidate = make_candidate(
        email="jane.doe@acme.invalid",
        alternative_emails=["jane@acme.invalid", "jane.doe@acme.com"],
        email_inferred=True
    )
    orchestrator = make_orchestrator(email_checker, [FakeStrategy("company_site", results=[candidate])])

    result = await orchestrator.discover(SearchFilters())

    prospect = result.prospects[0]
    assert prospect.email == "jane.doe@acme.com"
    assert prospect.validated is True
    assert prospect.email_validation.confidence == 75


@pytest.mark.asyncio
async def test_extracted_contact_end_to_end(email_checker):
    extractor = ContactExtractor(email_checker)

    class TextStrategy(SourceStrategy):
        name = "company_site"

        async def _discover(self, filters):
            return self.extractor.extract("Jane Doe, CEO of Acme Corp", ExtractionContext())

    orchestrator = make_orchestrator(email_checker, [TextStrategy(None, extractor)])

    result = await orchestrator.discover(SearchFilters(positions=["CEO"]))

    jane = result.prospects[0]
    assert jane.full_name == "Jane Doe"
    assert jane.company == "Acme Corp"
    assert jane.email == "jane.doe@acme.com"
    assert jane.validated is True
    assert jane.score == 100
    assert result.metadata.generated is False


# ========== FALLBACK TIERS ==========

@pytest.mark.asyncio
async def test_synthetic_tier_when_nothing_real(email_checker):
    payload = json.dumps([
        {"firstName": "Ann", "lastName": "Lee", "email": "ann.lee@northwind.com",
         "company": "Northwind", "position": "CTO", "industry": "Software", "location": "Denver",
         "summary": "Leads engineering."},
        {"first_name": "Bo", "last_name": "Kim", "company": "Contoso", "position": "VP Sales"},
        {"firstName": "Cy", "lastName": "Ortiz", "email": "cy@fabrikam.com", "company": "Fabrikam"},
    ])
    llm = FakeLLM(f"Here you go:\n```json\n{payload}\n```")
    strategies = [FakeStrategy("directory"), FakeStrategy("professional_network"), FakeStrategy("company_site")]
    orchestrator = make_orchestrator(email_checker, strategies, generator=SyntheticGenerator(llm))

    result = await orchestrator.discover(SearchFilters(industries=["Software"], positions=["CTO"]))

    meta = result.metadata
    assert meta.fallback_tier == FallbackTier.SYNTHETIC
    assert meta.generated is True
    assert meta.strategy_used is None
    assert meta.strategies_tried == ["directory", "professional_network", "company_site"]
    assert len(result.prospects) == 3
    assert all(p.source == ContactSource.SYNTHETIC for p in result.prospects)
    assert all("AI Generated" in p.tags for p in result.prospects)
    assert all(p.is_generated for p in result.prospects)
    assert len(llm.calls) == 1


@pytest.mark.asyncio
async def test_static_tier_when_generation_fails(email_checker):
    generator = FailingGenerator()
    orchestrator = make_orchestrator(email_checker, [FakeStrategy("directory")], generator=generator)

    result = await orchestrator.discover(SearchFilters(industries=["Healthcare"], limit=2))

    meta = result.metadata
    assert generator.generate_calls == 1
    assert meta.fallback_tier == FallbackTier.STATIC
    assert meta.generated is True
    assert any("synthetic generation failed" in w for w in meta.warnings)
    assert len(result.prospects) == 2
    assert all(p.tags == ["Demo Data"] for p in result.prospects)
    assert all(p.industry == "Healthcare" for p in result.prospects)


@pytest.mark.asyncio
async def test_no_strategies_still_returns_records(email_checker):
    orchestrator = make_orchestrator(email_checker, [])

    result = await orchestrator.discover(SearchFilters())

    assert result.prospects
    assert result.metadata.strategies_tried == []


@pytest.mark.asyncio
async def test_strategy_timeout_falls_back(email_checker):
    settings = get_settings().model_copy(update={"discovery_timeout": 0.05})
    slow = FakeStrategy("directory", results=[make_candidate()], delay=1.0)
    orchestrator = make_orchestrator(email_checker, [slow], settings=settings)

    result = await orchestrator.discover(SearchFilters())

    meta = result.metadata
    assert any("timeout" in w for w in meta.warnings)
    assert meta.strategy_used is None
    assert meta.fallback_tier == FallbackTier.STATIC
    assert result.prospects


# ========== ENTRY POINT ==========

@pytest.mark.asyncio
async def test_discover_prospects_records_stats(email_checker):
    orchestrator = make_orchestrator(email_checker, [FakeStrategy("company_site", results=[make_candidate()])])

    result = await discover_prospects(SearchFilters(positions=["CEO"]), orchestrator)

    stats = get_discovery_stats()
    assert result.metadata.total == 1
    assert stats["total_runs"] == 1
    assert stats["fallback_tiers"]["real"] == 1
    assert stats["strategy_hits"] == {"company_site": 1}
    assert stats["recent_runs"][0]["positions"] == ["CEO"]


@pytest.mark.asyncio
async def test_discover_prospects_notes_empty_filters(email_checker, caplog):
    orchestrator = make_orchestrator(email_checker, [])

    with caplog.at_level("INFO", logger="pipeline"):
        await discover_prospects(SearchFilters(location="Denver"), orchestrator)

    assert "searching with default terms" in caplog.text
    assert SearchFilters(location="Denver").has_criteria is False
    assert SearchFilters(keywords="payments").has_criteria is True
