"""
Response Normalizer for AI Analysis

Parses the model's free-form reply into a fixed AIAnalysisResult:
- Strips markdown code fences (```json ... ```)
- Coerces legacy string fields into lists
- Fills defaults for absent sections

Never raises: an unparseable reply becomes a degraded result that keeps the
raw text as the current analysis.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional

from .schemas import AIAnalysisResult, OPTIONAL_SECTIONS, Priority, ProposedService

logger = logging.getLogger(__name__)

FENCE_PATTERN = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)

# Older replies (and older stored rows) sent lists as one bulleted string
LEGACY_SPLIT_PATTERN = re.compile(r"\n|・|●|•")


class AIResponseNormalizer:
    """
    Normalizes model replies and stored aiAnalysis blobs.

    Usage:
        normalizer = AIResponseNormalizer()
        result = normalizer.normalize(raw_reply)
        print(result.main_issues)
    """

    def normalize(self, raw_text: str) -> AIAnalysisResult:
        """
        Parse a raw model reply.

        Args:
            raw_text: Reply text, possibly fenced, possibly not JSON at all

        Returns:
            AIAnalysisResult (degraded if the reply is not a JSON object)
        """
        text = self._extract_json_text(raw_text or "")

        try:
            data = json.loads(text.strip())
        except (json.JSONDecodeError, ValueError, RecursionError) as e:
            logger.warning(f"AI response is not valid JSON, storing raw text: {e}")
            return self._degraded(raw_text)

        if not isinstance(data, dict):
            logger.warning(f"AI response JSON is a {type(data).__name__}, expected an object")
            return self._degraded(raw_text)

        return self.from_dict(data)

    def from_dict(self, data: Dict[str, Any]) -> AIAnalysisResult:
        """Build a result from an already-decoded JSON object."""
        result = AIAnalysisResult(
            current_analysis=self._coerce_text(data.get("currentAnalysis")),
            main_issues=self._coerce_list(data.get("mainIssues")),
            recommendations=self._coerce_list(data.get("recommendations")),
            proposed_services=self._coerce_services(data.get("proposedServices")),
            expected_effects=self._coerce_text(data.get("expectedEffects")),
        )
        for key, attr in OPTIONAL_SECTIONS.items():
            setattr(result, attr, self._coerce_optional_text(data.get(key)))
        return result

    # =========================================================================
    # EXTRACTION
    # =========================================================================

    def _extract_json_text(self, raw_text: str) -> str:
        """Return the interior of the first fenced block, or the text itself."""
        match = FENCE_PATTERN.search(raw_text)
        if match:
            return match.group(1)
        return raw_text

    def _degraded(self, raw_text: str) -> AIAnalysisResult:
        return AIAnalysisResult(
            current_analysis=raw_text or "",
            main_issues=[],
            recommendations=[],
            proposed_services=[],
            expected_effects="",
        )

    # =========================================================================
    # FIELD COERCION
    # =========================================================================

    def _coerce_list(self, value: Any) -> List[Any]:
        """Lists pass through; strings are split on newlines and bullet glyphs."""
        if value is None:
            return []
        if isinstance(value, list):
            return value
        if isinstance(value, str):
            return split_legacy_list(value)
        return [value]

    def _coerce_text(self, value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, str):
            return value
        if isinstance(value, list):
            return "\n".join(str(v) for v in value)
        return str(value)

    def _coerce_optional_text(self, value: Any) -> Optional[str]:
        if value is None or value == "":
            return None
        return self._coerce_text(value)

    def _coerce_services(self, value: Any) -> List[ProposedService]:
        if value is None:
            return []
        if isinstance(value, dict):
            value = [value]
        if not isinstance(value, list):
            return []

        services = []
        for entry in value:
            if not isinstance(entry, dict):
                logger.debug(f"Skipping non-object proposed service: {entry!r}")
                continue
            timeline = entry.get("timeline")
            services.append(ProposedService(
                name=self._coerce_text(entry.get("name")),
                description=self._coerce_text(entry.get("description")),
                priority=parse_priority(entry.get("priority")),
                estimated_cost=self._coerce_text(entry.get("estimatedCost")),
                expected_effect=self._coerce_text(entry.get("expectedEffect")),
                reason=self._coerce_text(entry.get("reason")),
                timeline=self._coerce_text(timeline) if timeline not in (None, "") else None,
            ))
        return services


# =============================================================================
# HELPERS
# =============================================================================

def split_legacy_list(text: str) -> List[str]:
    """
    Split a bulleted string into items.

    Example:
        split_legacy_list("A・B・C") -> ["A", "B", "C"]
    """
    return [part.strip() for part in LEGACY_SPLIT_PATTERN.split(text) if part.strip()]


def parse_priority(value: Any) -> Priority:
    """Map HIGH/MEDIUM/LOW (any case) to Priority; anything else is MEDIUM."""
    if isinstance(value, str):
        try:
            return Priority(value.strip().upper())
        except ValueError:
            pass
    return Priority.MEDIUM


_default_normalizer = AIResponseNormalizer()


def normalize_ai_response(raw_text: str) -> AIAnalysisResult:
    """Normalize a raw model reply. Never raises."""
    return _default_normalizer.normalize(raw_text)


def load_stored_analysis(blob: Any) -> Optional[AIAnalysisResult]:
    """
    Read a persisted aiAnalysis value.

    Historical rows stored a JSON string written before normalization
    existed, newer rows store the normalized dict. Both go through the same
    string-vs-list coercion.

    Args:
        blob: None, a JSON string, or a dict

    Returns:
        AIAnalysisResult, or None when nothing was stored
    """
    if blob is None or blob == "":
        return None
    if isinstance(blob, dict):
        return _default_normalizer.from_dict(blob)
    if isinstance(blob, str):
        return _default_normalizer.normalize(blob)
    logger.warning(f"Unexpected stored aiAnalysis type: {type(blob).__name__}")
    return None
