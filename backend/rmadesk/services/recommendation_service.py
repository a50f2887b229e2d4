"""AI-assisted repair/replace/monitor suggestions for an RMA case."""

import json
import logging
import re
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from rmadesk.core.config import settings
from rmadesk.models.shared import utc_now
from rmadesk.schemas.rma_case import AiRecommendation, RmaCaseResponse
from rmadesk.schemas.serial_registry import SerialRegistryResponse, SerialServiceEventResponse
from rmadesk.services.errors import ExternalServiceError, IntegrationNotConfiguredError
from rmadesk.services.openrouter import OpenRouterClient, OpenRouterError
from rmadesk.services.rma_service import RmaCaseService

logger = logging.getLogger(__name__)

MAX_EVENTS = 50
MAX_TOKENS = 600
TEMPERATURE = 0.2
MAX_RATIONALE = 500
FALLBACK = {"recommendation": "monitor", "confidence": 0.5, "rationale": "insufficient history"}

SYSTEM_PROMPT = (
    "You are a senior repair technician reviewing a product return. "
    "Given the RMA case, the serial number's registry entry and its service history, "
    "recommend exactly one of: repair, replace, monitor. "
    'Reply with a single JSON object: {"recommendation": "repair|replace|monitor", '
    '"confidence": <number between 0 and 1>, "rationale": "<under 500 characters>"}.'
)

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)
_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


def parse_recommendation(content: str) -> dict[str, Any]:
    """Pull the first JSON object out of a model reply and coerce it into shape.

    Anything unusable falls back to ``monitor`` with 0.5 confidence.
    """
    match = _OBJECT_RE.search(_FENCE_RE.sub("", content or ""))
    if match is None:
        return dict(FALLBACK)
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError:
        return dict(FALLBACK)
    if not isinstance(data, dict):
        return dict(FALLBACK)

    recommendation = str(data.get("recommendation", "")).strip().lower()
    if recommendation not in ("repair", "replace", "monitor"):
        return dict(FALLBACK)
    try:
        confidence = float(data.get("confidence", FALLBACK["confidence"]))
    except (TypeError, ValueError):
        confidence = float(FALLBACK["confidence"])  # type: ignore[arg-type]
    rationale = str(data.get("rationale") or FALLBACK["rationale"]).strip()
    return {
        "recommendation": recommendation,
        "confidence": min(max(confidence, 0.0), 1.0),
        "rationale": rationale[:MAX_RATIONALE],
    }


class RecommendationService:
    def __init__(self, db: Session, client: OpenRouterClient | None = None):
        self.db = db
        self.cases = RmaCaseService(db)
        self.client = client or OpenRouterClient()

    def build_context(self, case_id: UUID) -> dict[str, Any]:
        detail = self.cases.get(case_id)
        return {
            "rmaCase": RmaCaseResponse.model_validate(detail.case).model_dump(mode="json"),
            "registry": (
                SerialRegistryResponse.model_validate(detail.registry).model_dump(mode="json")
                if detail.registry is not None
                else None
            ),
            "events": [
                SerialServiceEventResponse.model_validate(event).model_dump(mode="json")
                for event in detail.events[:MAX_EVENTS]
            ],
        }

    async def generate(self, case_id: UUID) -> AiRecommendation:
        if not self.client.is_configured:
            raise IntegrationNotConfiguredError("OpenRouter")
        context = self.build_context(case_id)
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": json.dumps(context)},
        ]
        try:
            response = await self.client.chat(
                model=settings.AI_MODEL,
                messages=messages,
                max_tokens=MAX_TOKENS,
                temperature=TEMPERATURE,
            )
        except OpenRouterError as exc:
            logger.warning("OpenRouter recommendation failed for RMA %s: %s", case_id, exc)
            raise ExternalServiceError("OpenRouter", str(exc)) from exc
        finally:
            await self.client.close()

        suggestion = AiRecommendation.model_validate(
            {**parse_recommendation(self.client.extract_content(response)), "generatedAt": utc_now()}
        )
        self.cases.store_recommendation(case_id, suggestion.model_dump(mode="json", by_alias=True))
        logger.info(
            "Stored %s recommendation for RMA %s", suggestion.recommendation, case_id
        )
        return suggestion
