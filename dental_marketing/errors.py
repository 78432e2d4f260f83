"""
Error taxonomy for the analysis pipeline.

Missing metric sources are not errors. Only an unknown clinic aborts a run;
model failures are recovered by the orchestrator.
"""

from typing import Optional


class AnalyzerError(Exception):
    """Base class for analysis pipeline errors."""


class ClinicNotFoundError(AnalyzerError):
    """Clinic does not exist or is outside the caller's organization."""

    def __init__(self, clinic_id: str):
        super().__init__(f"Clinic not found: {clinic_id}")
        self.clinic_id = clinic_id


class ModelCallError(AnalyzerError):
    """The external language model call failed."""

    def __init__(self, message: str, status_code: Optional[int] = None, response: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response
