"""
Narrative Assistant Client - Appraisal Calibration Engine
appraisal_engine/services/narrative_client.py

Optional generative-text collaborator. Given a suggestion set, it returns
prose keyed by suggestion_id. The suggester treats every failure here as
"no narrative available".

Wire format:
    POST {NARRATIVE_ASSISTANT_URL}
    body     CalibrationSuggestionSet as JSON
    response {"narratives": {"<suggestion_id>": "<text>", ...}}
"""
import logging
from typing import Dict, Optional

import httpx

from appraisal_engine.config import settings
from appraisal_engine.core.exceptions import NarrativeAssistantError
from appraisal_engine.models.calibration import CalibrationSuggestionSet

logger = logging.getLogger(__name__)


class NarrativeAssistant:
    """Interface: suggestion set in, narratives keyed by suggestion_id out."""

    def enrich(self, suggestion_set: CalibrationSuggestionSet) -> Dict[str, str]:
        raise NotImplementedError


class HttpNarrativeAssistant(NarrativeAssistant):
    def __init__(
        self,
        url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.url = url or settings.NARRATIVE_ASSISTANT_URL
        if not self.url:
            raise NarrativeAssistantError("NARRATIVE_ASSISTANT_URL is not configured")
        if api_key is None and settings.NARRATIVE_API_KEY is not None:
            api_key = settings.NARRATIVE_API_KEY.get_secret_value()
        self.api_key = api_key
        self.timeout = timeout or settings.NARRATIVE_TIMEOUT_SECONDS

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def enrich(self, suggestion_set: CalibrationSuggestionSet) -> Dict[str, str]:
        """
        Raises:
            NarrativeAssistantError: transport failure, non-2xx status or a
                payload without a ``narratives`` object.
        """
        try:
            resp = httpx.post(
                self.url,
                json=suggestion_set.model_dump(mode="json"),
                headers=self._headers(),
                timeout=self.timeout,
            )
            resp.raise_for_status()
            body = resp.json()
        except httpx.HTTPError as e:
            logger.warning("Narrative assistant request failed", extra={"url": self.url, "error": str(e)})
            raise NarrativeAssistantError(f"Narrative assistant request failed: {e}") from e
        except ValueError as e:
            raise NarrativeAssistantError("Narrative assistant returned invalid JSON") from e

        narratives = body.get("narratives") if isinstance(body, dict) else None
        if not isinstance(narratives, dict):
            raise NarrativeAssistantError("Narrative assistant response has no 'narratives' object")

        result = {str(k): str(v) for k, v in narratives.items() if v}
        logger.info("Narratives received", extra={"count": len(result)})
        return result


def get_narrative_assistant() -> Optional[NarrativeAssistant]:
    """HTTP assistant when a URL is configured, otherwise None."""
    if not settings.narrative_enabled:
        return None
    return HttpNarrativeAssistant()
