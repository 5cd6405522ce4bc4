"""
Question Templates — built-in survey question sets.

Six focus areas. 'strategic-alignment' is the default applied to new
assessments. Order is assigned from list position (1-based).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Tuple

from survey_kernel.domain_types import Question

VISION = "Vision & Strategy"
LEADERSHIP = "Leadership & Culture"
OPERATIONS = "Operations & Performance"
INNOVATION = "Innovation & Agility"
MARKET = "Market & Customer"

DEFAULT_TEMPLATE_ID = "strategic-alignment"


@dataclass(frozen=True)
class QuestionTemplate:
    id: str
    name: str
    description: str
    questions: Tuple[Question, ...]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "questions": [q.to_dict() for q in self.questions],
        }

    def fresh_questions(self) -> List[Question]:
        """Copies safe to embed in an assessment."""
        return [Question(q.id, q.text, q.category, q.order) for q in self.questions]


def _template(tid: str, name: str, description: str, rows: List[Tuple[str, str, str]]) -> QuestionTemplate:
    return QuestionTemplate(
        id=tid,
        name=name,
        description=description,
        questions=tuple(
            Question(id=qid, text=text, category=cat, order=i + 1)
            for i, (qid, text, cat) in enumerate(rows)
        ),
    )


# ---------------------------------------------------------------------------
# Template data
# ---------------------------------------------------------------------------

_STRATEGIC_ALIGNMENT = [
    ("vision-clarity", "Our organization has a clear and compelling vision for the future", VISION),
    ("strategy-execution", "We consistently execute on our strategic priorities", VISION),
    ("leadership-alignment", "Leadership is aligned on strategic direction and priorities", LEADERSHIP),
    ("stakeholder-buyin", "Key stakeholders are committed to our strategic direction", VISION),
    ("strategic-communication", "Strategic priorities are clearly communicated throughout the organization", LEADERSHIP),
    ("resource-allocation", "Resources are allocated effectively to support strategic objectives", OPERATIONS),
    ("strategic-metrics", "We have clear metrics to track progress on strategic initiatives", OPERATIONS),
    ("strategic-agility", "We can adapt our strategy quickly when circumstances change", INNOVATION),
]

_INNOVATION_GROWTH = [
    ("innovation-capability", "Our organization fosters innovation and adapts quickly to change", INNOVATION),
    ("market-responsiveness", "We respond quickly to changing market conditions", MARKET),
    ("growth-mindset", "Our culture embraces experimentation and learning from failure", LEADERSHIP),
    ("change-agility", "We manage change effectively throughout the organization", INNOVATION),
    ("customer-innovation", "We consistently innovate to meet evolving customer needs", MARKET),
    ("technology-adoption", "We effectively adopt and integrate new technologies", INNOVATION),
    ("competitive-advantage", "We maintain competitive advantages through innovation", MARKET),
    ("innovation-investment", "We invest appropriately in research and development", OPERATIONS),
    ("creative-environment", "We provide an environment that encourages creative thinking", LEADERSHIP),
    ("innovation-execution", "We successfully convert innovative ideas into business results", OPERATIONS),
]

_LEADERSHIP_CULTURE = [
    ("leadership-effectiveness", "Leadership provides clear direction and inspiration", LEADERSHIP),
    ("team-collaboration", "Teams collaborate effectively across the organization", LEADERSHIP),
    ("employee-engagement", "Employees are highly engaged and motivated", LEADERSHIP),
    ("cultural-alignment", "Our organizational culture supports our strategic objectives", LEADERSHIP),
    ("leadership-development", "We effectively develop leadership capabilities at all levels", LEADERSHIP),
    ("communication-effectiveness", "Communication flows effectively throughout the organization", LEADERSHIP),
    ("talent-retention", "We retain our top talent and key contributors", LEADERSHIP),
    ("performance-culture", "We have a culture of high performance and accountability", LEADERSHIP),
    ("diversity-inclusion", "We foster diversity and inclusion throughout the organization", LEADERSHIP),
    ("employee-empowerment", "Employees are empowered to make decisions and take ownership", LEADERSHIP),
    ("feedback-culture", "We have a culture of constructive feedback and continuous improvement", LEADERSHIP),
    ("values-alignment", "Employee behaviors consistently align with our organizational values", LEADERSHIP),
]

_OPERATIONAL_EXCELLENCE = [
    ("operational-efficiency", "Our processes and operations run smoothly and efficiently", OPERATIONS),
    ("quality-management", "We consistently deliver high-quality products and services", OPERATIONS),
    ("performance-metrics", "We have clear metrics and KPIs to measure operational performance", OPERATIONS),
    ("continuous-improvement", "We continuously improve our processes and operations", OPERATIONS),
    ("cost-management", "We effectively manage costs while maintaining quality", OPERATIONS),
    ("supply-chain", "Our supply chain and vendor relationships are well managed", OPERATIONS),
    ("risk-management", "We effectively identify and manage operational risks", OPERATIONS),
    ("scalability", "Our operations can scale effectively with business growth", OPERATIONS),
]

_PERFORMANCE_RESULTS = [
    ("financial-performance", "We consistently meet our financial targets and goals", OPERATIONS),
    ("goal-achievement", "We consistently achieve our key business objectives", OPERATIONS),
    ("performance-accountability", "There is clear accountability for performance results", LEADERSHIP),
    ("measurement-systems", "We have effective systems to measure and track performance", OPERATIONS),
    ("performance-transparency", "Performance results are transparently communicated", LEADERSHIP),
    ("corrective-action", "We take timely corrective action when performance falls short", OPERATIONS),
]

_DIGITAL_TRANSFORMATION = [
    ("technology-adoption", "We effectively adopt and integrate new technologies", INNOVATION),
    ("digital-capabilities", "We have strong digital capabilities and competencies", INNOVATION),
    ("process-digitization", "Our business processes are effectively digitized", OPERATIONS),
    ("data-driven-decisions", "We make decisions based on data and analytics", OPERATIONS),
    ("digital-customer-experience", "We deliver excellent digital customer experiences", MARKET),
    ("digital-culture", "Our culture embraces digital ways of working", LEADERSHIP),
    ("cybersecurity", "We have robust cybersecurity and data protection measures", OPERATIONS),
    ("digital-skills", "Our workforce has the digital skills needed for success", LEADERSHIP),
    ("automation", "We effectively automate routine processes and tasks", OPERATIONS),
    ("digital-innovation", "We leverage technology to drive innovation and competitive advantage", INNOVATION),
]

DEFAULT_TEMPLATES: Tuple[QuestionTemplate, ...] = (
    _template(
        "strategic-alignment",
        "Strategic Alignment Focus",
        "Focus on vision clarity, strategy execution, and organizational alignment",
        _STRATEGIC_ALIGNMENT,
    ),
    _template(
        "innovation-growth",
        "Innovation & Growth Focus",
        "Emphasize innovation capability, market responsiveness, and growth mindset",
        _INNOVATION_GROWTH,
    ),
    _template(
        "leadership-culture",
        "Leadership & Culture Focus",
        "Deep dive into leadership effectiveness and organizational culture",
        _LEADERSHIP_CULTURE,
    ),
    _template(
        "operational-excellence",
        "Operational Excellence Focus",
        "Concentrate on process efficiency, quality, and operational performance",
        _OPERATIONAL_EXCELLENCE,
    ),
    _template(
        "performance-results",
        "Performance & Results Focus",
        "Focus on goal achievement, accountability, and performance measurement",
        _PERFORMANCE_RESULTS,
    ),
    _template(
        "digital-transformation",
        "Digital Transformation Focus",
        "Evaluate digital capabilities, technology adoption, and digital culture",
        _DIGITAL_TRANSFORMATION,
    ),
)

_BY_ID: Dict[str, QuestionTemplate] = {t.id: t for t in DEFAULT_TEMPLATES}


def get_template(template_id: str) -> QuestionTemplate:
    """Look up a built-in template. Raises KeyError for unknown ids."""
    try:
        return _BY_ID[template_id]
    except KeyError:
        raise KeyError(
            f"Unknown question template {template_id!r}. "
            f"Known templates: {sorted(_BY_ID)}"
        ) from None


def default_template() -> QuestionTemplate:
    return _BY_ID[DEFAULT_TEMPLATE_ID]
