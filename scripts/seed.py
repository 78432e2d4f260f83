#!/usr/bin/env python3
"""
Database Seeder

Creates the tables, the chief complaint masters and (optionally) a demo
organization with one fully populated clinic.

Usage:
    python scripts/seed.py
    python scripts/seed.py --demo
"""

import argparse
import logging
import sys
from datetime import datetime, timedelta
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

DEMO_ORGANIZATION_ID = "demo-org"


def seed_demo(store) -> str:
    """Create a demo clinic with every metric source populated."""
    now = datetime.utcnow()

    store.create_organization("デモ組織", organization_id=DEMO_ORGANIZATION_ID)
    clinic_id = store.create_clinic(
        DEMO_ORGANIZATION_ID,
        "さくら歯科クリニック",
        prefecture="東京都",
        city="世田谷区",
        specialties=["一般歯科", "小児歯科", "矯正歯科"],
    )

    store.record_review(clinic_id, total_reviews=24, average_rating=4.1)
    store.record_analytics(
        clinic_id,
        period_start=now - timedelta(days=30),
        period_end=now,
        total_sessions=1800,
        total_users=1350,
        avg_session_duration=95,
        bounce_rate=58.5,
        paid_sessions=420,
        paid_bounce_rate=72.0,
        region_data={"Tokyo": 1100, "Kanagawa": 380, "Saitama": 120, "Osaka": 200},
    )

    for name, reviews, rating in [
        ("みどり歯科医院", 85, 4.3),
        ("ひかりデンタルクリニック", 52, 3.9),
        ("あおば歯科", 40, 4.0),
    ]:
        competitor_id = store.add_competitor(clinic_id, name)
        store.record_competitor_review(competitor_id, total_reviews=reviews, average_rating=rating)

    store.save_patient_month(
        clinic_id,
        year=now.year,
        month=now.month,
        total_new_patients=38,
        by_complaint={"虫歯治療": 15, "クリーニング・予防": 10, "矯正歯科": 6, "小児歯科": 7},
    )

    from dental_marketing.database import MeasureCategory

    listing_id = store.add_measure(clinic_id, "リスティング広告", category=MeasureCategory.ADVERTISING, cost=80000)
    store.record_measure_effect(listing_id, roi=125.0)
    store.add_measure(clinic_id, "Googleビジネスプロフィール運用", category=MeasureCategory.MEO, cost=30000)

    return clinic_id


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Seed the dental marketing database")
    parser.add_argument(
        "--demo",
        action="store_true",
        help="Also create a demo organization and clinic"
    )
    parser.add_argument(
        "--drop",
        action="store_true",
        help="Drop all tables first (USE WITH CAUTION!)"
    )
    args = parser.parse_args()

    load_dotenv()

    from dental_marketing.database import SqlMetricStore, get_session_factory, init_db

    init_db(drop_all=args.drop)
    store = SqlMetricStore(get_session_factory())
    store.seed_complaint_masters()

    if args.demo:
        clinic_id = seed_demo(store)
        print(f"Demo clinic created: {clinic_id} (organization: {DEMO_ORGANIZATION_ID})")


if __name__ == "__main__":
    main()
