"""
Statistics tracking for discovery runs.
Tracks how often each strategy yields, how often the generated fallback
tiers are needed, and the last 50 runs.
Persists to <data_dir>/discovery_stats.json.
"""
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, Any
from threading import Lock

from config import get_settings

logger = logging.getLogger(__name__)

STATS_FILENAME = "discovery_stats.json"
MAX_RECENT_RUNS = 50
_file_lock = Lock()


def _stats_path() -> Path:
    return Path(get_settings().data_dir) / STATS_FILENAME


def _empty_stats() -> Dict[str, Any]:
    now = datetime.now().isoformat()
    return {
        "created_at": now,
        "last_updated": now,
        "total_runs": 0,
        "prospects_returned": 0,
        "fallback_tiers": {"real": 0, "synthetic": 0, "static": 0},
        "strategy_hits": {},
        "timeouts": 0,
        "recent_runs": [],
    }


def _read() -> Dict[str, Any]:
    path = _stats_path()
    if not path.exists():
        return _empty_stats()
    try:
        return json.loads(path.read_text())
    except (json.JSONDecodeError, OSError) as e:
        logger.warning(f"Discovery stats unreadable, starting fresh: {e}")
        return _empty_stats()


def _write(stats: Dict[str, Any]) -> None:
    path = _stats_path()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(stats, indent=2, default=str))
    except OSError as e:
        logger.warning(f"Could not save discovery stats: {e}")


def track_discovery_result(result, filters) -> None:
    """
    Track a complete discovery run for quality monitoring.
    Called after each discovery completes.
    """
    metadata = result.metadata
    tier = metadata.fallback_tier.value

    with _file_lock:
        stats = _read()
        stats["total_runs"] += 1
        stats["last_updated"] = datetime.now().isoformat()
        stats["prospects_returned"] += metadata.total

        stats["fallback_tiers"][tier] = stats["fallback_tiers"].get(tier, 0) + 1

        if metadata.strategy_used:
            hits = stats["strategy_hits"]
            hits[metadata.strategy_used] = hits.get(metadata.strategy_used, 0) + 1

        if any("timeout" in w for w in metadata.warnings):
            stats["timeouts"] += 1

        # Recent runs log (keep last 50)
        stats["recent_runs"].append({
            "timestamp": datetime.now().isoformat(),
            "industries": filters.industries,
            "positions": filters.positions,
            "location": filters.location,
            "total": metadata.total,
            "tier": tier,
            "strategy": metadata.strategy_used,
        })
        if len(stats["recent_runs"]) > MAX_RECENT_RUNS:
            stats["recent_runs"] = stats["recent_runs"][-MAX_RECENT_RUNS:]

        _write(stats)


def get_discovery_stats() -> Dict[str, Any]:
    """Get discovery quality stats."""
    with _file_lock:
        return _read()


def get_discovery_dashboard() -> str:
    """Human-readable discovery quality dashboard."""
    stats = get_discovery_stats()
    total = stats.get("total_runs", 0)
    if total == 0:
        return "No discovery runs yet."

    def pct(n): return f"{n/total*100:.0f}%"

    tiers = stats.get("fallback_tiers", {})
    real = tiers.get("real", 0)
    synthetic = tiers.get("synthetic", 0)
    static = tiers.get("static", 0)
    timeouts = stats.get("timeouts", 0)

    lines = [
        "=" * 60,
        "DISCOVERY QUALITY DASHBOARD",
        "=" * 60,
        f"Total Runs:           {total}",
        f"Prospects Returned:   {stats.get('prospects_returned', 0)}",
        f"Last Updated:         {stats.get('last_updated', 'N/A')}",
        "",
        "--- RESULT TIER ---",
        f"  Real data:          {real}/{total} ({pct(real)})",
        f"  Synthetic:          {synthetic}/{total} ({pct(synthetic)})",
        f"  Static examples:    {static}/{total} ({pct(static)})",
        f"  Timeouts:           {timeouts}/{total} ({pct(timeouts)})",
        "",
        "--- STRATEGY HITS ---",
    ]
    for strategy, count in sorted(stats.get("strategy_hits", {}).items(), key=lambda x: -x[1]):
        lines.append(f"  {strategy}: {count} ({count/real*100:.0f}% of real)" if real > 0 else f"  {strategy}: {count}")

    recent = stats.get("recent_runs", [])
    if recent:
        lines.append("")
        lines.append(f"--- LAST {min(len(recent), 10)} RUNS ---")
        for run in recent[-10:]:
            what = ", ".join(run.get("positions", []) + run.get("industries", []))[:30] or "(no filters)"
            strategy = run.get("strategy") or "---"
            lines.append(f"  [{run.get('tier', '?'):<9}] {what:<30} | {strategy:<20} | {run.get('total', 0)}")

    return "\n".join(lines)


def reset_discovery_stats() -> None:
    """Reset discovery statistics."""
    with _file_lock:
        _write(_empty_stats())
        logger.info("Discovery statistics reset")
