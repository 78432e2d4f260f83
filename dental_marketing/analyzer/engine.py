"""
Clinic Analysis Engine - Orchestrates one analysis run.

This engine coordinates:
1. Snapshot assembly (fails only when the clinic is unknown)
2. Rule engine and score calculator over the same snapshot
3. Prompt building and the model call, bounded by a timeout
4. Response normalization
5. Persisting the AnalysisResult

The model step is best-effort: an exception or timeout leaves ai_analysis
empty and the run still completes with its scores and issues.
"""

import asyncio
import calendar
import logging
from datetime import datetime
from typing import Awaitable, Callable, Optional, Protocol

from ..collector.assembler import SnapshotAssembler
from ..collector.store import MetricStore
from ..models import AnalysisResult, AnalysisStatus, TenantScope
from ..output.parser import normalize_ai_response
from ..output.schemas import AIAnalysisResult
from ..scoring.issues import evaluate_issues
from ..scoring.scores import compute_scores
from .prompt import build_prompt

logger = logging.getLogger(__name__)


class ModelClient(Protocol):
    """Anything that turns a prompt into reply text."""

    async def complete(self, prompt: str) -> str:
        ...


class CallableModel:
    """
    Adapts a plain async function to the ModelClient protocol.

    Usage:
        async def fake_model(prompt: str) -> str:
            return '{"currentAnalysis": "..."}'

        analyzer = ClinicAnalyzer(store, CallableModel(fake_model))
    """

    def __init__(self, func: Callable[[str], Awaitable[str]]):
        self.func = func

    async def complete(self, prompt: str) -> str:
        return await self.func(prompt)


def one_month_before(moment: datetime) -> datetime:
    """Same day one calendar month earlier, clamped to the month's last day."""
    year, month = (moment.year, moment.month - 1) if moment.month > 1 else (moment.year - 1, 12)
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


class ClinicAnalyzer:
    """
    Runs the scoring and AI analysis pipeline for one clinic.

    Usage:
        analyzer = ClinicAnalyzer(store, model, ai_timeout=60.0)
        result = await analyzer.run(TenantScope("org-1", "user-1"), "clinic-1")
        print(result.scores.overall_score, result.id)
    """

    DEFAULT_AI_TIMEOUT = 60.0

    def __init__(
        self,
        store: MetricStore,
        model: ModelClient,
        ai_timeout: float = DEFAULT_AI_TIMEOUT,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the analyzer.

        Args:
            store: Storage collaborator (reads metrics, persists results)
            model: Model collaborator
            ai_timeout: Seconds to wait for the model before giving up
            clock: Returns "now" (defaults to datetime.utcnow)
        """
        self.store = store
        self.model = model
        self.ai_timeout = ai_timeout
        self.clock = clock or datetime.utcnow
        self.assembler = SnapshotAssembler(store)

    async def run(self, scope: TenantScope, clinic_id: str) -> AnalysisResult:
        """
        Execute one analysis run and persist its result.

        Args:
            scope: Organization and user the run is performed for
            clinic_id: Clinic to analyze

        Returns:
            Persisted AnalysisResult (with id)

        Raises:
            ClinicNotFoundError: Clinic missing or outside the organization
        """
        started_at = self.clock()
        logger.info(f"Starting analysis for clinic {clinic_id} (org {scope.organization_id})")

        snapshot = await self.assembler.assemble(scope, clinic_id)

        issues = evaluate_issues(snapshot)
        scores = compute_scores(snapshot)
        snapshot = snapshot.with_issues(issues)

        prompt = build_prompt(snapshot, issues)
        ai_analysis = await self._call_model(prompt, clinic_id)
        ai_analyzed_at = self.clock() if ai_analysis is not None else None

        result = AnalysisResult(
            clinic_id=clinic_id,
            analyzed_at=started_at,
            period_start=one_month_before(started_at),
            period_end=started_at,
            scores=scores,
            issues=issues,
            ai_analysis=ai_analysis,
            ai_analyzed_at=ai_analyzed_at,
            status=AnalysisStatus.COMPLETED,
            analyzed_by_id=scope.user_id,
        )

        result.id = await asyncio.to_thread(self.store.save_analysis_result, scope, result)
        logger.info(
            f"Analysis {result.id} saved for clinic {clinic_id}: "
            f"overall={scores.overall_score}, issues={len(issues)}, ai={ai_analysis is not None}"
        )
        return result

    async def _call_model(self, prompt: str, clinic_id: str) -> Optional[AIAnalysisResult]:
        """Call the model and normalize its reply; None when the call fails."""
        try:
            raw = await asyncio.wait_for(self.model.complete(prompt), timeout=self.ai_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"AI analysis timed out after {self.ai_timeout}s for clinic {clinic_id}")
            return None
        except Exception as e:
            logger.warning(f"AI analysis failed for clinic {clinic_id}: {e}")
            return None

        try:
            return normalize_ai_response(raw)
        except Exception as e:
            logger.warning(f"AI response could not be normalized for clinic {clinic_id}: {e}")
            return None
