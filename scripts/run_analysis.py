#!/usr/bin/env python3
"""
Clinic Analysis Runner

Runs one analysis for a clinic against the configured database and model,
then prints the stored result as JSON.

Usage:
    # Set environment variables first (or use .env):
    export OPENROUTER_API_KEY=your_key
    export DATABASE_URL=postgresql://...

    # Run analysis:
    python scripts/run_analysis.py <clinic_id> --org demo-org

    # Scores and issues only, no model call:
    python scripts/run_analysis.py <clinic_id> --org demo-org --no-ai
"""

import asyncio
import argparse
import json
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stdout,
)
logger = logging.getLogger(__name__)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


async def _no_model(prompt: str) -> str:
    raise RuntimeError("AI step disabled")


async def run_analysis(clinic_id: str, organization_id: str, user_id: str = None, use_ai: bool = True):
    """Run one analysis and return the result as a dict."""
    load_dotenv()

    from dental_marketing.analyzer import CallableModel, ClinicAnalyzer, create_model_client
    from dental_marketing.database import SqlMetricStore, get_session_factory, init_db
    from dental_marketing.errors import ModelCallError
    from dental_marketing.models import TenantScope
    from dental_marketing.utils import get_settings

    settings = get_settings()
    init_db()

    store = SqlMetricStore(get_session_factory())

    client = None
    if use_ai:
        try:
            client = create_model_client(settings)
        except ModelCallError as e:
            logger.warning(f"Model client unavailable, running without AI: {e}")

    try:
        analyzer = ClinicAnalyzer(store, client or CallableModel(_no_model), ai_timeout=settings.AI_TIMEOUT)
        result = await analyzer.run(TenantScope(organization_id, user_id), clinic_id)
    finally:
        if client is not None:
            await client.close()

    return result.to_dict()


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Run a marketing analysis for one dental clinic"
    )
    parser.add_argument(
        "clinic_id",
        help="Clinic ID to analyze"
    )
    parser.add_argument(
        "--org",
        required=True,
        help="Organization ID the clinic belongs to"
    )
    parser.add_argument(
        "--user",
        default=None,
        help="User ID recorded as the analyst (optional)"
    )
    parser.add_argument(
        "--no-ai",
        action="store_true",
        help="Skip the model call (scores and issues only)"
    )

    args = parser.parse_args()

    from dental_marketing.errors import AnalyzerError

    try:
        result = asyncio.run(run_analysis(
            clinic_id=args.clinic_id,
            organization_id=args.org,
            user_id=args.user,
            use_ai=not args.no_ai,
        ))
    except AnalyzerError as e:
        logger.error(str(e))
        sys.exit(1)

    print(json.dumps(result, ensure_ascii=False, indent=2))


if __name__ == "__main__":
    main()
