"""
Per-run cost and volume tracking for prospect discovery.

Text-generation calls carry an estimated cost; web searches and page
fetches are free but counted, since they dominate run time.

Uses contextvars so concurrent requests each get their own tracker.
"""

import logging
from collections import Counter
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from datetime import datetime

logger = logging.getLogger(__name__)


# Claude Sonnet pricing per 1K tokens (USD)
SONNET_INPUT_PER_1K = 0.003
SONNET_OUTPUT_PER_1K = 0.015

# Estimated (input, output) tokens per generation purpose
LLM_TOKEN_ESTIMATES = {
    "synthetic_prospects": (600, 2000),
    "sales_insights": (400, 800),
    "outreach_message": (400, 400),
    "prospect_scoring": (300, 200),
}
DEFAULT_TOKEN_ESTIMATE = (500, 200)


@dataclass
class LLMCall:
    purpose: str
    estimated_cost: float
    success: bool = True
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class RunCosts:
    """Totals for one discovery run."""
    llm_cost: float = 0.0
    llm_calls: int = 0
    llm_failures: int = 0
    searches: int = 0
    search_failures: int = 0
    fetches: int = 0
    rendered_fetches: int = 0
    fetch_failures: int = 0
    calls_by_purpose: Dict[str, int] = field(default_factory=dict)


class CostTracker:
    """
    Collects everything one discovery run spent.

    Usage:
        tracker = start_cost_tracking("CEO / Software")
        track_llm("synthetic_prospects")
        track_search()
        log_cost_summary()
    """

    def __init__(self, run_label: str = ""):
        self.run_label = run_label
        self.started_at = datetime.now()
        self.llm_calls: List[LLMCall] = []
        self.searches = Counter()
        self.fetches = Counter()

    def track_llm_call(self, purpose: str, success: bool = True):
        input_tokens, output_tokens = LLM_TOKEN_ESTIMATES.get(purpose, DEFAULT_TOKEN_ESTIMATE)
        cost = (input_tokens / 1000) * SONNET_INPUT_PER_1K + (output_tokens / 1000) * SONNET_OUTPUT_PER_1K
        # Failed calls are not billed
        self.llm_calls.append(LLMCall(purpose=purpose, estimated_cost=cost if success else 0.0, success=success))

    def track_web_search(self, success: bool = True):
        self.searches["ok" if success else "failed"] += 1

    def track_page_fetch(self, rendered: bool = False, success: bool = True):
        self.fetches["ok" if success else "failed"] += 1
        if rendered:
            self.fetches["rendered"] += 1

    def totals(self) -> RunCosts:
        by_purpose = Counter(call.purpose for call in self.llm_calls)
        return RunCosts(
            llm_cost=sum(call.estimated_cost for call in self.llm_calls),
            llm_calls=len(self.llm_calls),
            llm_failures=sum(1 for call in self.llm_calls if not call.success),
            searches=self.searches["ok"] + self.searches["failed"],
            search_failures=self.searches["failed"],
            fetches=self.fetches["ok"] + self.fetches["failed"],
            rendered_fetches=self.fetches["rendered"],
            fetch_failures=self.fetches["failed"],
            calls_by_purpose=dict(by_purpose)
        )

    def log_summary(self) -> RunCosts:
        """Log a formatted summary and return the totals."""
        totals = self.totals()
        duration = (datetime.now() - self.started_at).total_seconds()

        lines = [
            "",
            "=" * 60,
            f"COST SUMMARY: {self.run_label}",
            "=" * 60,
            f"Duration: {duration:.1f}s",
            f"Estimated LLM cost: ${totals.llm_cost:.4f}",
            f"LLM calls: {totals.llm_calls} ({totals.llm_failures} failed)",
        ]
        for purpose, count in sorted(totals.calls_by_purpose.items()):
            lines.append(f"  - {purpose}: {count}")
        lines.append(f"Web searches: {totals.searches} ({totals.search_failures} failed)")
        lines.append(
            f"Page fetches: {totals.fetches} "
            f"({totals.rendered_fetches} rendered, {totals.fetch_failures} failed)"
        )
        lines.append("=" * 60)

        logger.info("\n".join(lines))
        return totals


# Per-request tracker using contextvars
_current_tracker: ContextVar[Optional[CostTracker]] = ContextVar('cost_tracker', default=None)


def start_cost_tracking(run_label: str = "") -> CostTracker:
    """Start tracking costs for a new discovery run."""
    tracker = CostTracker(run_label)
    _current_tracker.set(tracker)
    return tracker


def get_cost_tracker() -> Optional[CostTracker]:
    return _current_tracker.get()


def track_llm(purpose: str, success: bool = True):
    tracker = _current_tracker.get()
    if tracker:
        tracker.track_llm_call(purpose, success)


def track_search(success: bool = True):
    tracker = _current_tracker.get()
    if tracker:
        tracker.track_web_search(success)


def track_fetch(rendered: bool = False, success: bool = True):
    tracker = _current_tracker.get()
    if tracker:
        tracker.track_page_fetch(rendered, success)


def log_cost_summary() -> Optional[RunCosts]:
    """Log the cost summary for the current run (no-op outside a run)."""
    tracker = _current_tracker.get()
    if tracker:
        return tracker.log_summary()
    return None
