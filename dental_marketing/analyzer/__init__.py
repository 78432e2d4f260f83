"""
Dental Marketing Analyzer - Analysis Engine

One run per clinic:
- Snapshot assembly, issue rules and scores
- Prompt building and the model call (OpenRouter or Claude)
- Response normalization and persistence

Also provides the on-demand measure effect evaluation.
"""

from .client import (
    ClaudeClient,
    OpenRouterClient,
    RetryConfig,
    TokenUsage,
    create_model_client,
)
from .engine import CallableModel, ClinicAnalyzer, ModelClient, one_month_before
from .measure_effect import (
    MeasureROI,
    PeriodMetrics,
    analyze_measure_effect,
    build_measure_effect_prompt,
    calculate_measure_roi,
)
from .prompt import SERVICE_CATALOG, build_prompt

__all__ = [
    # Clients
    "ClaudeClient",
    "OpenRouterClient",
    "RetryConfig",
    "TokenUsage",
    "create_model_client",

    # Engine
    "CallableModel",
    "ClinicAnalyzer",
    "ModelClient",
    "one_month_before",

    # Prompt
    "SERVICE_CATALOG",
    "build_prompt",

    # Measure effect
    "MeasureROI",
    "PeriodMetrics",
    "analyze_measure_effect",
    "build_measure_effect_prompt",
    "calculate_measure_roi",
]
