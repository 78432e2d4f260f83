"""
Output Module

Normalization of model replies into the fixed AI analysis schema.

Usage:
    from dental_marketing.output import normalize_ai_response

    result = normalize_ai_response(reply_text)
    print(result.main_issues)
"""

from .schemas import (
    AI_ANALYSIS_SCHEMA,
    AIAnalysisResult,
    Priority,
    ProposedService,
)
from .parser import (
    AIResponseNormalizer,
    load_stored_analysis,
    normalize_ai_response,
    parse_priority,
    split_legacy_list,
)

__all__ = [
    # Schemas
    "AI_ANALYSIS_SCHEMA",
    "AIAnalysisResult",
    "Priority",
    "ProposedService",
    # Parser
    "AIResponseNormalizer",
    "load_stored_analysis",
    "normalize_ai_response",
    "parse_priority",
    "split_legacy_list",
]
