"""
HTTP API for prospect discovery.

POST /discover                 filters -> ranked prospects (+ optional persistence)
POST /insights                 contact -> sales insights (always 200)
POST /outreach                 contact + channel/tone/objective -> draft message (502 on failure)
GET  /prospects/{id}           stored prospect
POST /prospects/{id}/insights  stored prospect -> sales insights (404 if unknown)
POST /prospects/{id}/outreach  stored prospect + channel/tone/objective -> draft message
POST /prospects/score          re-score stored prospects (model, else the discovery formula)
GET  /health, /stats

Run: uvicorn main:app --host 0.0.0.0 --port 8000
"""

import logging

from fastapi import FastAPI, Depends, HTTPException, Query
from fastapi.responses import PlainTextResponse

from config import get_settings
from models import (
    SearchFilters, DiscoveryResult, ContactProfile, InsightBundle,
    OutreachRequest, OutreachMessage, StoredOutreachRequest, ProspectInsights,
    ScoreRequest, ScoreResult
)
from pipeline import DiscoveryOrchestrator, discover_prospects, score_stored_prospects
from clients.insight_generator import InsightGenerator, GenerationError
from utils.prospect_store import ProspectStore, GENERATED_OWNER
from utils.stats import get_discovery_stats, get_discovery_dashboard

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s"
)
# httpx logs every request line at INFO
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

# Owner for real records stored through the API (no auth layer here)
API_OWNER = "api"

app = FastAPI(title="Prospect Discovery", version="1.0.0")


def get_orchestrator() -> DiscoveryOrchestrator:
    return DiscoveryOrchestrator()


def get_insight_generator() -> InsightGenerator:
    return InsightGenerator()


def get_prospect_store() -> ProspectStore:
    return ProspectStore()


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.post("/discover", response_model=DiscoveryResult)
async def discover(
    filters: SearchFilters,
    persist: bool = Query(default=False),
    orchestrator: DiscoveryOrchestrator = Depends(get_orchestrator),
    store: ProspectStore = Depends(get_prospect_store)
):
    result = await discover_prospects(filters, orchestrator)

    if persist:
        created = 0
        for prospect in result.prospects:
            if prospect.is_generated:
                if not get_settings().persist_generated:
                    continue
                owner = GENERATED_OWNER
            else:
                owner = API_OWNER
            try:
                if store.save(prospect, owner).created:
                    created += 1
            except Exception as e:
                logger.warning(f"Could not store prospect {prospect.id}: {e}")
        result.metadata.new_count = created
        logger.info(f"Stored {created} new prospect(s)")

    return result


@app.post("/insights", response_model=InsightBundle)
async def insights(
    contact: ContactProfile,
    generator: InsightGenerator = Depends(get_insight_generator)
):
    return await generator.generate_insights(contact)


@app.post("/outreach", response_model=OutreachMessage)
async def outreach(
    request: OutreachRequest,
    generator: InsightGenerator = Depends(get_insight_generator)
):
    try:
        return await generator.generate_message(
            request.contact,
            request.channel,
            request.tone,
            request.objective
        )
    except GenerationError as e:
        raise HTTPException(status_code=502, detail=str(e))


@app.get("/prospects/{prospect_id}")
async def get_prospect(
    prospect_id: str,
    store: ProspectStore = Depends(get_prospect_store)
):
    return _stored_record(store, prospect_id)


@app.post("/prospects/score", response_model=ScoreResult)
async def score_prospects(
    request: ScoreRequest,
    generator: InsightGenerator = Depends(get_insight_generator),
    store: ProspectStore = Depends(get_prospect_store)
):
    records = []
    missing = []
    for prospect_id in dict.fromkeys(request.prospect_ids):
        record = store.get(prospect_id)
        if record is None:
            missing.append(prospect_id)
        else:
            records.append(record)

    if not records:
        raise HTTPException(status_code=404, detail="No prospects found")

    scored = await score_stored_prospects(records, generator)
    return ScoreResult(scored_prospects=scored, total=len(scored), missing_ids=missing)


@app.post("/prospects/{prospect_id}/insights", response_model=ProspectInsights)
async def stored_prospect_insights(
    prospect_id: str,
    generator: InsightGenerator = Depends(get_insight_generator),
    store: ProspectStore = Depends(get_prospect_store)
):
    profile = _profile_from_record(_stored_record(store, prospect_id))
    bundle = await generator.generate_insights(profile)
    return ProspectInsights(prospect_id=prospect_id, prospect=profile, insights=bundle)


@app.post("/prospects/{prospect_id}/outreach", response_model=OutreachMessage)
async def stored_prospect_outreach(
    prospect_id: str,
    request: StoredOutreachRequest,
    generator: InsightGenerator = Depends(get_insight_generator),
    store: ProspectStore = Depends(get_prospect_store)
):
    profile = _profile_from_record(_stored_record(store, prospect_id))
    try:
        return await generator.generate_message(profile, request.channel, request.tone, request.objective)
    except GenerationError as e:
        raise HTTPException(status_code=502, detail=str(e))


def _stored_record(store: ProspectStore, prospect_id: str) -> dict:
    record = store.get(prospect_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Prospect not found")
    return record


def _profile_from_record(record: dict) -> ContactProfile:
    return ContactProfile(
        first_name=record.get("first_name") or "Unknown",
        last_name=record.get("last_name") or "",
        company=record.get("company") or "",
        position=record.get("position") or "",
        industry=record.get("industry") or "",
        location=record.get("location") or "",
        email=record.get("email")
    )


@app.get("/stats")
async def stats():
    return get_discovery_stats()


@app.get("/stats/dashboard", response_class=PlainTextResponse)
async def stats_dashboard():
    return get_discovery_dashboard()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host=settings.host, port=settings.port)
