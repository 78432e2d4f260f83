"""
Analysis Prompt Builder

Renders a MetricSnapshot, industry benchmarks and detected issues into the
Japanese prompt sent to the model. Section order:

1. Role preamble and clinic identity
2. Benchmark reference values
3. Web analytics, reviews, competitors, new patients, active measures
   (each replaced by a notice when its source is absent)
4. Detected issues
5. Task, JSON output schema and the catalog of proposable services

Pure and deterministic: the same snapshot always yields the same prompt.
"""

import json
import logging
from typing import List, Optional, Sequence

from ..models import (
    ActiveMeasure,
    AnalyticsMetrics,
    ClinicProfile,
    CompetitorMetrics,
    Issue,
    MetricSnapshot,
    PatientMetrics,
    ReviewMetrics,
    Severity,
)
from ..output.schemas import AI_ANALYSIS_SCHEMA
from ..scoring.helpers import (
    BENCHMARKS,
    BenchmarkLevel,
    format_duration,
    format_number,
    level_higher_is_better,
    level_lower_is_better,
    mean,
    round_half_up,
)

logger = logging.getLogger(__name__)


# Services the model may propose (it picks 3-5)
SERVICE_CATALOG: List[str] = [
    "リスティング広告（Google/Yahoo）",
    "MEO対策（Googleビジネスプロフィール最適化）",
    "HP改善（デザイン・導線・コンテンツ）",
    "口コミ促進施策",
    "ポスティング",
    "SEO対策",
    "LP作成（主訴別）",
    "SNS運用",
    "動画制作",
    "チラシ・パンフレット制作",
]

MIN_PROPOSED_SERVICES = 3
MAX_PROPOSED_SERVICES = 5

# Ideal values shown next to the analytics rows
IDEAL_LOCAL_TRAFFIC_RATE = 60
IDEAL_PAID_BOUNCE_RATE = 50

SEVERITY_BADGES = {
    Severity.HIGH: "🔴重要",
    Severity.MEDIUM: "🟡注意",
    Severity.LOW: "🔵参考",
}

PREAMBLE = """あなたは歯科医院マーケティングの専門家です。10年以上の実績を持ち、数百件の歯科医院の集客改善を手がけてきました。
以下のデータを多角的に分析し、具体的で実行可能な改善提案を作成してください。"""

TASK = """---

## 分析タスク
上記データを基に、以下の観点から総合的に分析してください：

1. **現状の強み・弱み分析**: 数値データに基づいた客観的評価
2. **課題の優先順位付け**: 緊急度と影響度のマトリクスで整理
3. **競合との差別化ポイント**: 勝てる領域と改善すべき領域
4. **投資対効果の高い施策**: 限られた予算で最大効果を出す方法
5. **短期・中期のアクションプラン**: 今すぐ始めるべきこと、3ヶ月後に始めるべきこと

以下のJSON形式で出力してください："""

JSON_ONLY = "JSONのみを出力してください。"


# ============================================================================
# SECTIONS
# ============================================================================

def _clinic_section(clinic: ClinicProfile) -> str:
    specialties = ", ".join(clinic.specialties) or "未設定"
    return f"""## 分析対象医院
- 医院名: {clinic.name}
- 所在地: {clinic.prefecture}{clinic.city}
- 診療科目: {specialties}"""


def _benchmark_section() -> str:
    sessions = BENCHMARKS["sessions"]
    bounce = BENCHMARKS["bounce_rate"]
    duration = BENCHMARKS["avg_duration"]
    reviews = BENCHMARKS["reviews"]
    rating = BENCHMARKS["rating"]

    return f"""## 業界ベンチマーク（参考値）
- 月間セッション: 要改善{sessions['poor']}件未満、平均{sessions['average']}件、優良{sessions['good']}件以上、最優良{sessions['excellent']}件以上
- 直帰率: 最優良{bounce['excellent']}%以下、優良{bounce['good']}%以下、平均{bounce['average']}%、要改善{bounce['poor']}%超
- 平均滞在時間: 要改善{duration['poor']}秒未満、平均{format_number(duration['average'] / 60)}分、優良{format_number(duration['good'] / 60)}分以上、最優良{format_number(duration['excellent'] / 60)}分以上
- 口コミ数: 要改善{reviews['poor']}件未満、平均{reviews['average']}件、優良{reviews['good']}件以上、最優良{reviews['excellent']}件以上
- 口コミ評価: 要改善{format_number(rating['poor'])}点未満、平均{format_number(rating['average'])}点、優良{format_number(rating['good'])}点以上、最優良{format_number(rating['excellent'])}点以上"""


def _advice(level: BenchmarkLevel, weak: str, strong: str) -> str:
    return weak if level.is_weak else strong


def _analytics_section(analytics: AnalyticsMetrics) -> str:
    sessions_level = level_higher_is_better(analytics.total_sessions, BENCHMARKS["sessions"])
    bounce_level = level_lower_is_better(analytics.bounce_rate, BENCHMARKS["bounce_rate"])
    duration_level = level_higher_is_better(analytics.avg_session_duration, BENCHMARKS["avg_duration"])
    duration = format_duration(analytics.avg_session_duration)
    average_minutes = format_number(BENCHMARKS["avg_duration"]["average"] / 60)

    if analytics.local_traffic_rate is None:
        local_row = f"| 地域流入率 | 未計測 | {IDEAL_LOCAL_TRAFFIC_RATE}%以上が理想 | - |"
    else:
        local_level = "良好" if analytics.local_traffic_rate >= IDEAL_LOCAL_TRAFFIC_RATE else "要改善"
        local_row = (
            f"| 地域流入率 | {format_number(analytics.local_traffic_rate)}% | "
            f"{IDEAL_LOCAL_TRAFFIC_RATE}%以上が理想 | {local_level} |"
        )

    rows = [
        "| 指標 | 値 | 業界水準 | 評価 |",
        "|------|-----|---------|------|",
        f"| 月間セッション | {analytics.total_sessions}件 | 平均{BENCHMARKS['sessions']['average']}件 | {sessions_level.value} |",
        f"| 月間ユーザー | {analytics.total_users}人 | - | - |",
        local_row,
        f"| 平均滞在時間 | {duration} | 平均{average_minutes}分 | {duration_level.value} |",
        f"| 直帰率 | {format_number(analytics.bounce_rate)}% | 平均{BENCHMARKS['bounce_rate']['average']}% | {bounce_level.value} |",
    ]
    if analytics.paid_sessions:
        rows.append(f"| 広告経由セッション | {analytics.paid_sessions}件 | - | - |")
    if analytics.paid_bounce_rate:
        paid_level = "良好" if analytics.paid_bounce_rate <= IDEAL_PAID_BOUNCE_RATE else "要改善"
        rows.append(
            f"| 広告経由直帰率 | {format_number(analytics.paid_bounce_rate)}% | "
            f"{IDEAL_PAID_BOUNCE_RATE}%以下が理想 | {paid_level} |"
        )

    points = [
        f"- セッション数が{sessions_level.value}のため、"
        + _advice(sessions_level, "SEO対策や広告運用の強化が必要", "現状維持しつつ質の向上を目指す"),
        f"- 直帰率{format_number(analytics.bounce_rate)}%は{bounce_level.value}。"
        + _advice(bounce_level, "LPの改善やコンテンツの充実が急務", "引き続き良質なコンテンツを提供"),
        f"- 平均滞在時間{duration}は{duration_level.value}。"
        + _advice(duration_level, "ユーザーの興味を引くコンテンツが不足している可能性", "情報提供は適切"),
    ]

    return "## Webサイト分析データ\n" + "\n".join(rows) + "\n\n### Webサイト分析のポイント\n" + "\n".join(points)


def _analytics_absent_section() -> str:
    return """## Webサイト分析データ
※ Google Analyticsデータが未連携のため、Web集客の詳細分析ができません。
→ 改善提案: GA4を設定し、データに基づいた改善サイクルを構築することを強く推奨します。"""


def _review_section(review: ReviewMetrics) -> str:
    count_level = level_higher_is_better(review.total_reviews, BENCHMARKS["reviews"])
    rating_level = level_higher_is_better(review.average_rating, BENCHMARKS["rating"])
    rating = format_number(review.average_rating)
    count_advice = _advice(
        count_level,
        "口コミ獲得施策が急務。来院時の声がけやフォローアップメールを検討",
        "継続的に口コミを増やす取り組みを",
    )
    rating_advice = _advice(
        rating_level,
        "低評価の原因分析と改善が必要。待ち時間、説明の丁寧さ、痛みへの配慮を見直す",
        "高評価を維持しつつ、さらなる向上を",
    )

    return f"""## 口コミデータ
| 指標 | 値 | 業界水準 | 評価 |
|------|-----|---------|------|
| 口コミ数 | {review.total_reviews}件 | 平均{BENCHMARKS['reviews']['average']}件 | {count_level.value} |
| 平均評価 | {rating}点 | 平均{format_number(BENCHMARKS['rating']['average'])}点 | {rating_level.value} |

### 口コミ分析のポイント
- 口コミ数{review.total_reviews}件は{count_level.value}。{count_advice}
- 評価{rating}点は{rating_level.value}。{rating_advice}"""


def _review_absent_section() -> str:
    return """## 口コミデータ
※ Google Place IDが未設定のため、口コミデータが取得できていません。
→ 改善提案: Google Place IDを設定して口コミ分析を有効化することを推奨します。
   口コミは新規患者の来院決定に大きく影響します（約80%の患者が口コミを参考にしています）。"""


def _signed_gap(value: float) -> str:
    sign = "+" if value > 0 else ""
    return f"{sign}{value:.1f}点"


def _competitor_section(competitors: Sequence[CompetitorMetrics], review: Optional[ReviewMetrics]) -> str:
    avg_rating = mean(c.average_rating for c in competitors)
    avg_reviews = mean(c.total_reviews for c in competitors)

    rows = [
        "| 医院名 | 口コミ数 | 評価 | 自院との差（評価） |",
        "|--------|---------|------|-------------------|",
    ]
    for c in competitors:
        gap = _signed_gap(review.average_rating - c.average_rating) if review else "-"
        rows.append(f"| {c.name} | {c.total_reviews}件 | {format_number(c.average_rating)}点 | {gap} |")
    average_gap = _signed_gap(review.average_rating - avg_rating) if review else "-"
    rows.append(
        f"| **競合平均** | **{round_half_up(avg_reviews)}件** | **{avg_rating:.1f}点** | {average_gap} |"
    )

    if review:
        rating_cmp = "同等以上" if review.average_rating >= avg_rating else "下回っている"
        count_cmp = "同等以上" if review.total_reviews >= avg_reviews else "下回っている"
        points = (
            f"- 自院の評価{format_number(review.average_rating)}点は競合平均{avg_rating:.1f}点と比較して{rating_cmp}\n"
            f"- 口コミ数{review.total_reviews}件は競合平均{round_half_up(avg_reviews)}件と比較して{count_cmp}"
        )
    else:
        points = "- 口コミデータがないため競合との詳細比較ができません"

    return "## 競合比較データ\n" + "\n".join(rows) + "\n\n### 競合分析のポイント\n" + points


def _competitor_absent_section() -> str:
    return """## 競合比較データ
※ 競合医院が登録されていないため、競合比較ができません。
→ 改善提案: 近隣の競合医院を登録し、口コミ数・評価の比較分析を有効化することを推奨します。"""


def _share(count: int, total: int) -> str:
    if total <= 0:
        return "0.0%"
    return f"{count / total * 100:.1f}%"


def _patient_section(patients: PatientMetrics) -> str:
    total = patients.total_new_patients
    lines = [
        f"## 新規患者データ（{patients.year}年{patients.month}月）",
        f"- 新規患者合計: {total}人",
        "- 主訴別内訳:",
    ]
    for c in patients.by_complaint:
        lines.append(f"  - {c.complaint_name}: {c.count}人（{_share(c.count, total)}）")

    top = sorted(patients.by_complaint, key=lambda c: c.count, reverse=True)[:3]
    lines.append("")
    lines.append("### 患者データ分析のポイント")
    if top:
        lines.append(f"- 上位主訴: {'、'.join(c.complaint_name for c in top)}")
        lines.append(f"- {top[0].complaint_name}が最多（{top[0].count}人、{_share(top[0].count, total)}）")
        lines.append("- この主訴に対応した施策（LP作成、広告キーワード設定等）が効果的")
    else:
        lines.append("- 主訴別の内訳が未入力のため、主訴別の分析ができません")

    return "\n".join(lines)


def _patient_absent_section() -> str:
    return """## 新規患者データ
※ 新規患者データが未入力のため、主訴別の分析ができません。
→ 改善提案: 月次の新規患者数と主訴別内訳を入力し、主訴に合わせた施策立案を可能にすることを推奨します。"""


def _roi_evaluation(measure: ActiveMeasure) -> str:
    if measure.roi is None:
        return "ROI未計測（効果測定を推奨）"
    if measure.roi > 100:
        return "効果あり（継続推奨）"
    if measure.roi > 0:
        return "効果限定的（改善検討）"
    return "効果なし（見直し必要）"


def _measure_section(measures: Sequence[ActiveMeasure]) -> str:
    lines = ["## 実施中の施策"]
    for m in measures:
        roi = f"、ROI: {format_number(m.roi)}%" if m.roi is not None else ""
        lines.append(f"- {m.name}（{m.category}）: ¥{m.cost:,}/月{roi}")
    lines.append("")
    lines.append("### 施策評価のポイント")
    for m in measures:
        lines.append(f"- {m.name}: {_roi_evaluation(m)}")
    return "\n".join(lines)


def _measure_absent_section() -> str:
    return """## 実施中の施策
※ 実施中の施策が登録されていないため、施策効果の評価ができません。
→ 改善提案: 実施中の施策と費用を登録し、効果測定（ROI）を行うことを推奨します。"""


def _issue_section(issues: Sequence[Issue]) -> str:
    if not issues:
        return "## システム検出課題\n- 検出された課題はありません"
    lines = ["## システム検出課題"]
    for issue in issues:
        lines.append(f"- [{SEVERITY_BADGES[issue.severity]}] {issue.message}")
    return "\n".join(lines)


def _service_section() -> str:
    services = "\n".join(f"- {name}" for name in SERVICE_CATALOG)
    return (
        f"proposedServicesは以下のサービスから課題に応じて"
        f"{MIN_PROPOSED_SERVICES}-{MAX_PROPOSED_SERVICES}個提案してください：\n{services}"
    )


# ============================================================================
# PROMPT
# ============================================================================

def build_prompt(snapshot: MetricSnapshot, issues: Sequence[Issue]) -> str:
    """
    Build the clinic analysis prompt.

    Args:
        snapshot: Assembled clinic metrics
        issues: Rule engine output for the same snapshot

    Returns:
        Prompt text
    """
    sections = [
        PREAMBLE,
        _clinic_section(snapshot.clinic),
        _benchmark_section(),
        _analytics_section(snapshot.analytics) if snapshot.analytics else _analytics_absent_section(),
        _review_section(snapshot.review) if snapshot.review else _review_absent_section(),
        (
            _competitor_section(snapshot.competitors, snapshot.review)
            if snapshot.competitors else _competitor_absent_section()
        ),
        _patient_section(snapshot.patient_data) if snapshot.patient_data else _patient_absent_section(),
        _measure_section(snapshot.active_measures) if snapshot.active_measures else _measure_absent_section(),
        _issue_section(issues),
        TASK,
        json.dumps(AI_ANALYSIS_SCHEMA, ensure_ascii=False, indent=2),
        _service_section(),
        JSON_ONLY,
    ]

    prompt = "\n\n".join(sections)
    logger.debug(f"Built prompt for {snapshot.clinic.id} ({len(prompt)} chars, {len(issues)} issues)")
    return prompt
