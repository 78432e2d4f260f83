"""
Measure Effect Analysis

Before/after comparison for a single marketing measure:
- Percent change of sessions, new patients and reviews
- Patient increase, estimated revenue and ROI
- A short model-written evaluation (on demand, outside the analysis run)
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..errors import ModelCallError

logger = logging.getLogger(__name__)

# Assumed revenue per new patient, in yen
DEFAULT_REVENUE_PER_PATIENT = 30000


@dataclass(frozen=True)
class PeriodMetrics:
    """One month of results around a measure."""
    sessions: int
    patients: int
    reviews: int


@dataclass(frozen=True)
class MeasureROI:
    """Effect of a measure; None wherever a ratio has a zero denominator."""
    patient_increase: int
    estimated_revenue: int
    roi: Optional[float]
    sessions_change: Optional[float]
    patients_change: Optional[float]
    reviews_change: Optional[float]


def percent_change(before: float, after: float) -> Optional[float]:
    """(after / before - 1) * 100, or None when before is 0."""
    if not before:
        return None
    return (after / before - 1) * 100


def calculate_measure_roi(
    cost: int,
    before: PeriodMetrics,
    after: PeriodMetrics,
    revenue_per_patient: int = DEFAULT_REVENUE_PER_PATIENT,
) -> MeasureROI:
    """
    Calculate the before/after effect of a measure.

    Args:
        cost: Measure cost in yen
        before: Month before the measure
        after: Month after the measure
        revenue_per_patient: Revenue attributed to each additional patient

    Returns:
        MeasureROI (roi is None for a free measure)

    Example:
        cost 100,000, patients 10 -> 20:
        revenue 300,000, roi (300,000 - 100,000) / 100,000 * 100 = 200.0
    """
    patient_increase = after.patients - before.patients
    estimated_revenue = patient_increase * revenue_per_patient
    roi = (estimated_revenue - cost) / cost * 100 if cost else None

    return MeasureROI(
        patient_increase=patient_increase,
        estimated_revenue=estimated_revenue,
        roi=roi,
        sessions_change=percent_change(before.sessions, after.sessions),
        patients_change=percent_change(before.patients, after.patients),
        reviews_change=percent_change(before.reviews, after.reviews),
    )


def _change_label(change: Optional[float]) -> str:
    if change is None:
        return "変化率算出不可"
    return f"{change:.1f}%変化"


def build_measure_effect_prompt(
    name: str,
    category: str,
    cost: int,
    before: PeriodMetrics,
    after: PeriodMetrics,
    revenue_per_patient: int = DEFAULT_REVENUE_PER_PATIENT,
) -> str:
    """Build the measure evaluation prompt."""
    roi = calculate_measure_roi(cost, before, after, revenue_per_patient)
    roi_text = f"{roi.roi:.1f}%" if roi.roi is not None else "算出不可（費用0円）"

    return f"""あなたは歯科医院のマーケティング専門家です。
以下の施策効果データを分析し、評価と今後のアドバイスを提供してください。

## 施策情報
- 施策名: {name}
- カテゴリ: {category}
- 費用: ¥{cost:,}

## 施策前データ（1ヶ月）
- セッション数: {before.sessions}
- 新規患者数: {before.patients}人
- 口コミ数: {before.reviews}件

## 施策後データ（1ヶ月）
- セッション数: {after.sessions}（{_change_label(roi.sessions_change)}）
- 新規患者数: {after.patients}人（{_change_label(roi.patients_change)}）
- 口コミ数: {after.reviews}件（{_change_label(roi.reviews_change)}）

## ROI計算
- 新規患者増加: {roi.patient_increase}人
- 推定売上増加: ¥{roi.estimated_revenue:,}（患者単価{revenue_per_patient // 10000}万円と仮定）
- ROI: {roi_text}

---

以下の観点で分析してください：
1. 効果サマリー（100文字程度）
2. 成功要因または改善点
3. 今後の推奨アクション

簡潔に300文字程度でまとめてください。"""


async def analyze_measure_effect(
    model,
    name: str,
    category: str,
    cost: int,
    before: PeriodMetrics,
    after: PeriodMetrics,
) -> str:
    """
    Ask the model for a short evaluation of a measure.

    Args:
        model: ModelClient
        name: Measure name
        category: Measure category
        cost: Measure cost in yen
        before: Month before the measure
        after: Month after the measure

    Returns:
        Evaluation text

    Raises:
        ModelCallError: The model call failed
    """
    prompt = build_measure_effect_prompt(name, category, cost, before, after)
    try:
        return await model.complete(prompt)
    except ModelCallError:
        raise
    except Exception as e:
        logger.error(f"Measure effect analysis failed for {name}: {e}")
        raise ModelCallError(f"Measure effect analysis failed: {e}") from e
