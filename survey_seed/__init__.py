"""
Survey Seed — built-in question templates and the demo assessment.

Deterministic: same seed → same demo scores.
"""

from .deterministic_rng import DeterministicRNG
from .question_templates import (
    DEFAULT_TEMPLATES,
    DEFAULT_TEMPLATE_ID,
    QuestionTemplate,
    default_template,
    get_template,
)
from .demo_data import build_demo_assessment

__all__ = [
    "DeterministicRNG",
    "DEFAULT_TEMPLATES",
    "DEFAULT_TEMPLATE_ID",
    "QuestionTemplate",
    "default_template",
    "get_template",
    "build_demo_assessment",
]
