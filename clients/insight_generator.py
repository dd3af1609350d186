"""
Sales intelligence, outreach drafts and batch scoring for contacts.

Insights degrade to a fixed generic bundle; outreach messages fail loudly
(GenerationError) because an empty draft is useless to the caller. Scores
come back per contact, None where the model gave nothing usable.
"""

import json
import logging
import re
from typing import Optional, Union, List

from models import (
    InsightBundle, OutreachMessage, OutreachChannel, OutreachTone,
    ContactProfile, CandidateContact
)
from clients.llm_client import LLMClient, get_llm_client, parse_json_response
from utils.cost_tracker import track_llm

logger = logging.getLogger(__name__)

Contact = Union[ContactProfile, CandidateContact]

INSIGHTS_PROMPT = """Analyze this B2B prospect and provide sales intelligence:

Name: {name}
Company: {company}
Position: {position}
Industry: {industry}
Location: {location}

Generate:
1. 3 personalized talking points for outreach
2. Best outreach strategy (email, LinkedIn, phone)
3. Potential pain points they might have
4. Company insights and news opportunities
5. Personalization data for messaging

Return ONLY JSON with: talkingPoints[], outreachStrategy, painPoints[], companyInsights, personalizationData"""

MESSAGE_PROMPT = """Create a personalized {channel} outreach message for:

Name: {name}
Company: {company}
Position: {position}
Industry: {industry}

Message requirements:
- Type: {channel}
- Tone: {tone}
- Objective: {objective}
- Length: {length}

Make it personalized, relevant and compelling. Include a clear call-to-action.
{extra}"""

SCORING_PROMPT = """Score these B2B prospects from 1-100 based on:
- Position seniority and decision-making power
- Company size and revenue potential
- Industry attractiveness
- Contact data quality

Prospects: {prospects}

Return ONLY a JSON array of scores (numbers only) in the same order."""

MESSAGE_LENGTHS = {
    OutreachChannel.EMAIL: "150-200 words",
    OutreachChannel.LINKEDIN: "100-150 words",
    OutreachChannel.PHONE: "30-60 seconds",
}


class GenerationError(Exception):
    """Outreach message could not be generated."""


def generic_insights() -> InsightBundle:
    return InsightBundle(
        talking_points=['Industry expertise', 'Company growth', 'Market trends'],
        pain_points=['Scaling challenges', 'Efficiency improvements'],
        outreach_strategy='LinkedIn connection followed by email',
        company_insights='Growing company in competitive market',
        personalization_data='Recent company developments'
    )


class InsightGenerator:

    def __init__(self, llm_client: Optional[LLMClient] = None):
        self.llm_client = llm_client or get_llm_client()

    async def generate_insights(self, contact: Contact) -> InsightBundle:
        """Never raises: any failure returns the generic bundle."""
        prompt = INSIGHTS_PROMPT.format(
            name=_full_name(contact),
            company=contact.company or "Unknown",
            position=contact.position or "Unknown",
            industry=contact.industry or "Unknown",
            location=contact.location or "Unknown"
        )

        try:
            response = await self.llm_client.call(prompt, temperature=0.6, max_tokens=800)
        except Exception as e:
            logger.warning(f"Insight generation failed for {_full_name(contact)}: {e}")
            track_llm("sales_insights", success=False)
            return generic_insights()

        # The call went through (and is billed) even if its output is unusable
        track_llm("sales_insights")
        try:
            data = parse_json_response(response.content)
            if not isinstance(data, dict):
                raise ValueError("insights are not an object")
            return _to_bundle(data)
        except Exception as e:
            logger.warning(f"Unusable insights for {_full_name(contact)}: {e}")
            return generic_insights()

    async def generate_message(
        self,
        contact: Contact,
        channel: OutreachChannel,
        tone: OutreachTone = OutreachTone.PROFESSIONAL,
        objective: str = "introductory meeting"
    ) -> OutreachMessage:
        prompt = MESSAGE_PROMPT.format(
            channel=channel.value,
            name=_full_name(contact),
            company=contact.company or "Unknown",
            position=contact.position or "Unknown",
            industry=contact.industry or "Unknown",
            tone=tone.value,
            objective=objective,
            length=MESSAGE_LENGTHS[channel],
            extra="Include subject line." if channel == OutreachChannel.EMAIL else ""
        )

        try:
            response = await self.llm_client.call(prompt, temperature=0.7, max_tokens=400)
        except Exception as e:
            logger.error(f"Outreach generation failed: {e}")
            track_llm("outreach_message", success=False)
            raise GenerationError("generation failed") from e

        track_llm("outreach_message")
        content = (response.content or "").strip()
        if not content:
            raise GenerationError("generation failed")

        return OutreachMessage(
            content=content,
            channel=channel,
            tone=tone,
            objective=objective
        )

    async def score_prospects(self, contacts: List[Contact]) -> List[Optional[int]]:
        """
        One 1-100 score per contact, in order. Never raises.

        A slot is None when the model gave no usable number for it, so the
        caller can fall back to its own scoring for that contact only.
        """
        if not contacts:
            return []

        summary = [
            {
                "name": _full_name(c),
                "position": c.position or "",
                "company": c.company or "",
                "industry": c.industry or "",
            }
            for c in contacts
        ]
        prompt = SCORING_PROMPT.format(prospects=json.dumps(summary))

        try:
            response = await self.llm_client.call(prompt, temperature=0.3, max_tokens=200)
        except Exception as e:
            logger.warning(f"Prospect scoring failed: {e}")
            track_llm("prospect_scoring", success=False)
            return [None] * len(contacts)

        track_llm("prospect_scoring")
        scores = _parse_scores(response.content)
        if len(scores) != len(contacts):
            logger.warning(f"Scoring returned {len(scores)} score(s) for {len(contacts)} prospect(s)")

        padded = scores + [None] * (len(contacts) - len(scores))
        return [s if s is not None and 1 <= s <= 100 else None for s in padded[:len(contacts)]]


def _parse_scores(content: str) -> List[Optional[int]]:
    """JSON array if there is one (non-numbers kept as None), else every integer in the text."""
    try:
        data = parse_json_response(content)
        if isinstance(data, list):
            return [
                int(s) if isinstance(s, (int, float)) and not isinstance(s, bool) else None
                for s in data
            ]
    except ValueError:
        pass
    return [int(s) for s in re.findall(r'\b\d{1,3}\b', content or "")]


def _full_name(contact: Contact) -> str:
    return f"{contact.first_name} {contact.last_name or ''}".strip()


def _to_bundle(data: dict) -> InsightBundle:
    """Accepts camelCase or snake_case keys; missing parts come from the generic bundle."""
    fallback = generic_insights()

    def pick(camel: str, snake: str):
        value = data.get(camel)
        return value if value else data.get(snake)

    talking_points = pick("talkingPoints", "talking_points")
    pain_points = pick("painPoints", "pain_points")

    return InsightBundle(
        talking_points=[str(p) for p in talking_points] if isinstance(talking_points, list) else fallback.talking_points,
        pain_points=[str(p) for p in pain_points] if isinstance(pain_points, list) else fallback.pain_points,
        outreach_strategy=str(pick("outreachStrategy", "outreach_strategy") or fallback.outreach_strategy),
        company_insights=str(pick("companyInsights", "company_insights") or fallback.company_insights),
        personalization_data=str(pick("personalizationData", "personalization_data") or fallback.personalization_data)
    )
