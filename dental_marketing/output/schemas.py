"""
Output Schemas for AI Analysis

Defines the fixed structure the model reply is normalized into, and the
schema description embedded in the analysis prompt.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class Priority(Enum):
    """Priority of a proposed service."""
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


# Field names and descriptions shown to the model. Key order is the order the
# model is asked to emit them in.
AI_ANALYSIS_SCHEMA: Dict[str, Any] = {
    "currentAnalysis": "現状分析（400-500文字）：データに基づいた客観的な現状説明。強み・弱みを明確に。業界水準との比較を含める。",
    "mainIssues": [
        "【優先度1】最も緊急性の高い課題とその根拠（具体的な数値を含める）",
        "【優先度2】2番目に重要な課題とその根拠",
        "【優先度3】3番目に重要な課題とその根拠",
        "【優先度4】中期的に対応すべき課題",
        "【優先度5】長期的に検討すべき課題",
    ],
    "competitorAnalysis": "競合分析（200-300文字）：競合との比較結果、差別化ポイント、勝てる領域。競合データがない場合は一般的な競合環境を想定して記載。",
    "webAnalysis": "Web集客分析（200-300文字）：流入数、直帰率、滞在時間の評価と改善方向性。データがない場合は改善の重要性を記載。",
    "reviewAnalysis": "口コミ分析（200-300文字）：口コミの量と質の評価、改善方向性。データがない場合は口コミ獲得の重要性を記載。",
    "complaintAnalysis": "主訴別分析（150-200文字）：注力すべき主訴、マーケティング施策への活用方法。患者データがない場合はnull。",
    "measureEvaluation": "施策効果評価（150-200文字）：実施中施策の効果評価と改善提案。施策データがない場合はnull。",
    "recommendations": [
        "【今すぐ実施】1週間以内に始めるべき施策（具体的なアクション）",
        "【1ヶ月以内】準備期間が必要な施策",
        "【3ヶ月以内】中期的に取り組む施策",
        "【継続的】定期的に行うべき施策",
        "【検討事項】状況に応じて検討する施策",
    ],
    "proposedServices": [
        {
            "name": "サービス名",
            "description": "具体的な内容（80文字程度）",
            "priority": "HIGH/MEDIUM/LOW",
            "estimatedCost": "月額○○円〜○○円",
            "expectedEffect": "期待効果（例：新規患者+○人/月、口コミ+○件/月）",
            "reason": "提案理由（データに基づく根拠）",
            "timeline": "実施期間の目安",
        }
    ],
    "expectedEffects": "施策実施後の期待効果（200-250文字）：3ヶ月後、6ヶ月後の具体的な目標数値を含める",
}

# Optional narrative sections: absent (None) when the model omits them
OPTIONAL_SECTIONS = {
    "competitorAnalysis": "competitor_analysis",
    "webAnalysis": "web_analysis",
    "reviewAnalysis": "review_analysis",
    "complaintAnalysis": "complaint_analysis",
    "measureEvaluation": "measure_evaluation",
}


@dataclass
class ProposedService:
    """A marketing service the model proposes for the clinic."""
    name: str
    description: str = ""
    priority: Priority = Priority.MEDIUM
    estimated_cost: str = ""
    expected_effect: str = ""
    reason: str = ""
    timeline: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "name": self.name,
            "description": self.description,
            "priority": self.priority.value,
            "estimatedCost": self.estimated_cost,
            "expectedEffect": self.expected_effect,
            "reason": self.reason,
        }
        if self.timeline is not None:
            data["timeline"] = self.timeline
        return data


@dataclass
class AIAnalysisResult:
    """Normalized model reply stored in AnalysisResult.ai_analysis."""
    current_analysis: str = ""
    main_issues: List[Any] = field(default_factory=list)
    competitor_analysis: Optional[str] = None
    web_analysis: Optional[str] = None
    review_analysis: Optional[str] = None
    complaint_analysis: Optional[str] = None
    measure_evaluation: Optional[str] = None
    recommendations: List[Any] = field(default_factory=list)
    proposed_services: List[ProposedService] = field(default_factory=list)
    expected_effects: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the camelCase shape; None sections are omitted."""
        data: Dict[str, Any] = {
            "currentAnalysis": self.current_analysis,
            "mainIssues": list(self.main_issues),
        }
        for key, attr in OPTIONAL_SECTIONS.items():
            value = getattr(self, attr)
            if value is not None:
                data[key] = value
        data["recommendations"] = list(self.recommendations)
        data["proposedServices"] = [s.to_dict() for s in self.proposed_services]
        data["expectedEffects"] = self.expected_effects
        return data
