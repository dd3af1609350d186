"""
Prospect Discovery Pipeline

Flow:
1. Source strategies in priority order (directory -> profiles -> company sites),
   stop at the first one that yields anything
2. Dedup (email, else first/last/company)
3. Email validation, invalid emails upgraded from ranked alternatives
4. Composite score + stable ranking
5. Nothing real? Synthetic tier ("AI Generated"), then static examples ("Demo Data")

Generated records never share a result set with real ones, and a
well-formed request always gets a non-empty list back.
"""

import logging
import asyncio
from typing import Optional, List, Tuple, Callable

from config import get_settings, Settings
from models import (
    SearchFilters, CandidateContact, ScoredProspect, EmailValidation,
    ContactSource, FallbackTier, DiscoveryMetadata, DiscoveryResult,
    ProspectScore, ScoreMethod
)
from clients.email_checker import EmailChecker, get_email_checker
from clients.contact_extractor import ContactExtractor
from clients.web_fetcher import WebFetcher
from clients.strategies import SourceStrategy, build_default_strategies
from clients.synthetic_generator import SyntheticGenerator
from clients.insight_generator import InsightGenerator

from utils.stats import track_discovery_result
from utils.cost_tracker import start_cost_tracking, log_cost_summary

logger = logging.getLogger(__name__)

# fetcher -> strategies in priority order
StrategyFactory = Callable[[WebFetcher], List[SourceStrategy]]

SENIOR_KEYWORDS = ['ceo', 'cto', 'cfo', 'president', 'director', 'vp', 'vice president']

PLACEHOLDER_WEBSITE_HOSTS = {'example.com', 'example.org', 'test.com', 'placeholder.com', 'localhost'}

MIN_SCORE = 20
MAX_SCORE = 100


def compute_score(candidate: CandidateContact, validation: EmailValidation) -> int:
    """
    Composite prospect score in [20, 100].

    50 base + 0.3 x email confidence + 20 senior title + 10 real website
    + 15 professional-network source + 0.2 x extraction confidence.
    """
    score = 50.0
    score += validation.confidence * 0.3

    position = (candidate.position or "").lower()
    if any(keyword in position for keyword in SENIOR_KEYWORDS):
        score += 20

    if _has_real_website(candidate.website):
        score += 10

    if candidate.source == ContactSource.PROFESSIONAL_NETWORK:
        score += 15

    score += candidate.confidence * 0.2

    return max(MIN_SCORE, min(MAX_SCORE, round(score)))


def deduplicate(candidates: List[CandidateContact]) -> List[CandidateContact]:
    """First occurrence wins; key = normalized email, else (first, last, company)."""
    seen = set()
    unique = []
    for candidate in candidates:
        key = candidate.dedup_key()
        if key in seen:
            continue
        seen.add(key)
        unique.append(candidate)
    return unique


def _has_real_website(website: Optional[str]) -> bool:
    value = (website or "").strip().lower()
    if not value.startswith("http"):
        return False
    host = value.split("://", 1)[-1].split("/")[0]
    host = host[4:] if host.startswith("www.") else host
    return bool(host) and host not in PLACEHOLDER_WEBSITE_HOSTS


class DiscoveryOrchestrator:
    """Runs the strategy chain, finalizes candidates and owns the fallback tiers."""

    def __init__(
        self,
        strategy_factory: Optional[StrategyFactory] = None,
        email_checker: Optional[EmailChecker] = None,
        synthetic_generator: Optional[SyntheticGenerator] = None,
        settings: Optional[Settings] = None
    ):
        self.settings = settings or get_settings()
        self.email_checker = email_checker or get_email_checker()
        self.strategy_factory = strategy_factory or self._default_strategies
        self._synthetic_generator = synthetic_generator

    @property
    def synthetic_generator(self) -> SyntheticGenerator:
        if self._synthetic_generator is None:
            self._synthetic_generator = SyntheticGenerator()
        return self._synthetic_generator

    def _default_strategies(self, fetcher: WebFetcher) -> List[SourceStrategy]:
        return build_default_strategies(fetcher, ContactExtractor(self.email_checker))

    # Exposed on the instance for callers holding an orchestrator
    deduplicate = staticmethod(deduplicate)
    compute_score = staticmethod(compute_score)

    async def discover(self, filters: SearchFilters) -> DiscoveryResult:
        metadata = DiscoveryMetadata()

        # ========== PHASE 1: REAL SOURCES ==========
        candidates, strategy_used = await self._run_strategies(filters, metadata)

        prospects: List[ScoredProspect] = []
        tier = FallbackTier.REAL
        if candidates:
            logger.info(f"✓ {strategy_used}: {len(candidates)} raw candidate(s)")
            prospects = await self._finalize(candidates)

        # ========== PHASE 2: GENERATED FALLBACK ==========
        if not prospects:
            logger.warning("No real prospects found - falling back to generated records")
            strategy_used = None
            prospects, tier = await self._fallback(filters, metadata)

        prospects = prospects[:filters.limit]

        metadata.total = len(prospects)
        metadata.generated = tier != FallbackTier.REAL
        metadata.fallback_tier = tier
        metadata.strategy_used = strategy_used

        return DiscoveryResult(prospects=prospects, metadata=metadata)

    async def _run_strategies(
        self,
        filters: SearchFilters,
        metadata: DiscoveryMetadata
    ) -> Tuple[List[CandidateContact], Optional[str]]:
        """Strategies in order, first non-empty wins; whole phase bounded by discovery_timeout."""
        timeout = self.settings.discovery_timeout

        async with WebFetcher() as fetcher:
            strategies = self.strategy_factory(fetcher)
            try:
                return await asyncio.wait_for(
                    self._first_yield(strategies, filters, metadata),
                    timeout=timeout
                )
            except asyncio.TimeoutError:
                logger.error(f"Strategy phase timeout ({timeout}s)")
                metadata.warnings.append(f"strategy timeout after {timeout}s")
                return [], None

    async def _first_yield(
        self,
        strategies: List[SourceStrategy],
        filters: SearchFilters,
        metadata: DiscoveryMetadata
    ) -> Tuple[List[CandidateContact], Optional[str]]:
        for step, strategy in enumerate(strategies, 1):
            logger.info(f"📍 Step {step}: {strategy.name}")
            metadata.strategies_tried.append(strategy.name)

            found = await strategy.discover(filters)
            if found:
                return found, strategy.name

            logger.info(f"✗ {strategy.name}: nothing found")

        return [], None

    async def _fallback(
        self,
        filters: SearchFilters,
        metadata: DiscoveryMetadata
    ) -> Tuple[List[ScoredProspect], FallbackTier]:
        try:
            generated = await self.synthetic_generator.generate(filters)
        except Exception as e:
            logger.warning(f"Synthetic generation failed: {e}")
            metadata.warnings.append(f"synthetic generation failed: {e}")
            generated = []

        if generated:
            return await self._finalize(generated), FallbackTier.SYNTHETIC

        logger.warning("Using static example records")
        static = self.synthetic_generator.static_examples(filters)
        return await self._finalize(static), FallbackTier.STATIC

    async def _finalize(self, candidates: List[CandidateContact]) -> List[ScoredProspect]:
        """Dedup -> validate (+ upgrade) -> score -> stable rank."""
        unique = deduplicate(candidates)
        if len(unique) < len(candidates):
            logger.info(f"Dedup: {len(candidates)} -> {len(unique)}")

        validations = await self.email_checker.validate_many([c.email or "" for c in unique])

        prospects = []
        for candidate, validation in zip(unique, validations):
            email, validation = await self._upgrade_email(candidate, validation)
            data = candidate.model_dump()
            data["email"] = email
            prospects.append(ScoredProspect(
                **data,
                email_validation=validation,
                score=compute_score(candidate, validation),
                validated=validation.is_valid
            ))

        prospects.sort(key=lambda p: p.score, reverse=True)
        return prospects

    async def _upgrade_email(
        self,
        candidate: CandidateContact,
        validation: EmailValidation
    ) -> Tuple[Optional[str], EmailValidation]:
        """Swap an invalid email for the first alternative that validates better."""
        if validation.is_valid:
            return candidate.email, validation

        for alternative in candidate.alternative_emails:
            alt_validation = await self.email_checker.validate(alternative)
            if alt_validation.is_valid and alt_validation.confidence > validation.confidence:
                logger.debug(f"Email upgrade: {candidate.email} -> {alternative}")
                return alternative, alt_validation

        return candidate.email, validation


def _run_label(filters: SearchFilters) -> str:
    parts = filters.positions[:2] + filters.industries[:2]
    if filters.location:
        parts.append(filters.location)
    return " / ".join(parts) or "(no filters)"


async def discover_prospects(
    filters: SearchFilters,
    orchestrator: Optional[DiscoveryOrchestrator] = None
) -> DiscoveryResult:
    """Main discovery entry point: one orchestrated run plus cost/stats bookkeeping."""
    label = _run_label(filters)
    start_cost_tracking(label)
    logger.info(f"=== Starting discovery for: {label} (limit {filters.limit}) ===")
    if not filters.has_criteria:
        logger.info("  No industries, positions or keywords given, searching with default terms")

    orchestrator = orchestrator or DiscoveryOrchestrator()
    result = await orchestrator.discover(filters)

    try:
        track_discovery_result(result, filters)
    except Exception as e:
        logger.warning(f"Could not record discovery stats: {e}")

    log_cost_summary()

    meta = result.metadata
    logger.info(
        f"=== Discovery complete: {meta.total} prospect(s), tier={meta.fallback_tier.value}, "
        f"strategy={meta.strategy_used or '---'} ==="
    )
    return result


async def score_stored_prospects(
    records: List[dict],
    generator: Optional[InsightGenerator] = None
) -> List[ProspectScore]:
    """
    Re-score stored prospects. The model scores the batch; any prospect it
    gives no usable number for keeps the discovery formula (compute_score).
    """
    prospects = [ScoredProspect.model_validate(record) for record in records]
    generator = generator or InsightGenerator()

    start_cost_tracking(f"scoring {len(prospects)} prospect(s)")
    llm_scores = await generator.score_prospects(prospects)
    log_cost_summary()

    scored = []
    for prospect, llm_score in zip(prospects, llm_scores):
        if llm_score is not None:
            score, method = llm_score, ScoreMethod.LLM
        else:
            score, method = compute_score(prospect, prospect.email_validation), ScoreMethod.HEURISTIC
        scored.append(ProspectScore(
            prospect_id=prospect.id,
            name=prospect.full_name,
            company=prospect.company,
            position=prospect.position,
            score=score,
            method=method
        ))

    logger.info(
        f"Scored {len(scored)} prospect(s), "
        f"{sum(1 for s in scored if s.method == ScoreMethod.HEURISTIC)} by formula"
    )
    return scored
