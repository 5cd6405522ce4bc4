"""
Summary Context — input for the external narrative generator.

Builds the RoleAggregate-shaped context and the prompt text. The text
generation call itself lives outside this package.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .domain_types import CategoryAverage, RoleAggregate


@dataclass
class SummaryContext:
    category_averages: List[CategoryAverage] = field(default_factory=list)
    overall_average: float = 0.0
    total_responses: int = 0
    department: Optional[str] = None

    @classmethod
    def from_role_aggregate(
        cls, aggregate: RoleAggregate, department: Optional[str] = None
    ) -> "SummaryContext":
        return cls(
            category_averages=list(aggregate.category_averages),
            overall_average=aggregate.overall_average,
            total_responses=aggregate.response_count,
            department=department,
        )

    def to_dict(self) -> dict:
        return {
            "categoryAverages": [c.to_dict() for c in self.category_averages],
            "overallAverage": self.overall_average,
            "totalResponses": self.total_responses,
            "department": self.department,
        }


def _num(value: float) -> str:
    """Render 8.0 as '8' and 7.25 as '7.25'."""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def format_summary_prompt(context: SummaryContext) -> str:
    category_scores = "\n".join(
        f"- {cat.category}: {_num(cat.average)}/10 "
        f"(based on {cat.responses} question{'' if cat.responses == 1 else 's'})"
        for cat in context.category_averages
    )
    department_line = f"- Department: {context.department}" if context.department else ""

    return (
        "You are analyzing results from a strategic organizational assessment survey. "
        "Please provide a concise business summary (2-3 paragraphs maximum) of the "
        "following results:\n"
        "\n"
        "SURVEY RESULTS:\n"
        f"- Overall Average Score: {_num(context.overall_average)}/10\n"
        f"- Total Questions Answered: {context.total_responses}\n"
        f"{department_line}\n"
        "\n"
        "CATEGORY BREAKDOWN:\n"
        f"{category_scores}\n"
        "\n"
        "Please provide:\n"
        "1. A brief interpretation of the overall performance\n"
        "2. Key strengths (highest scoring categories)\n"
        "3. Areas for improvement (lowest scoring categories)\n"
        "4. 2-3 specific strategic recommendations\n"
        "\n"
        "Keep the tone professional and actionable for business leadership. "
        "Focus on insights that would help guide strategic decision-making."
    )


def summary_statistics(
    category_averages: List[CategoryAverage], overall_average: float
) -> Optional[Dict[str, object]]:
    """Highest/lowest category, score distribution, performance band."""
    if not category_averages:
        return None
    highest = max(category_averages, key=lambda c: c.average)
    lowest = min(category_averages, key=lambda c: c.average)
    if overall_average >= 7:
        band = "strong"
    elif overall_average >= 5:
        band = "moderate"
    else:
        band = "needs_attention"
    return {
        "highestCategory": highest.to_dict(),
        "lowestCategory": lowest.to_dict(),
        "scoreDistribution": {
            "excellent": sum(1 for c in category_averages if c.average >= 8),
            "good": sum(1 for c in category_averages if 6 <= c.average < 8),
            "needs_improvement": sum(1 for c in category_averages if c.average < 6),
        },
        "overallPerformance": band,
    }
