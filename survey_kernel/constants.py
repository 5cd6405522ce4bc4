"""
Survey Kernel — Constants

All magic numbers and well-known names live here as module-level values.
"""

from __future__ import annotations

from typing import Dict, Tuple

# --- Roles ---
ROLE_MANAGEMENT: str = "management"
ROLE_EMPLOYEE: str = "employee"
ROLES: Tuple[str, ...] = (ROLE_MANAGEMENT, ROLE_EMPLOYEE)

# Access-code role tokens
ROLE_CODE_TOKENS: Dict[str, str] = {
    ROLE_MANAGEMENT: "MGMT",
    ROLE_EMPLOYEE: "EMP",
}

# --- Assessment lifecycle ---
STATUS_COLLECTING: str = "collecting"
STATUS_READY: str = "ready"
STATUS_LOCKED: str = "locked"
STATUSES: Tuple[str, ...] = (STATUS_COLLECTING, STATUS_READY, STATUS_LOCKED)

# --- Identifier rules ---
DEPARTMENT_SLUG_MAX_LENGTH: int = 8
ORG_PREFIX_MAX_LENGTH: int = 8
DEPT_PREFIX_MAX_LENGTH: int = 3
CODE_SUFFIX_DIGITS: int = 4

# Word list for assessment-level access codes (ORG-YEAR-WORD)
ACCESS_CODE_WORDS: Tuple[str, ...] = (
    "STRATEGY", "GROWTH", "VISION", "FOCUS", "ALIGN",
    "ENGAGE", "THRIVE", "EXCEL", "LEAD", "SCALE",
)

# --- Score scale ---
SCORE_MIN: int = 1
SCORE_MAX: int = 10

# --- Perception gap significance (strict > boundaries) ---
GAP_HIGH_THRESHOLD: float = 2.5
GAP_MEDIUM_THRESHOLD: float = 1.5

# --- Consultant insight thresholds ---
CRITICAL_GAP_LIMIT: int = 2
CRITICAL_SCORE_FLOOR: float = 6.0
ATTENTION_ALIGNMENT_GAP: float = 1.5

# --- Corruption ---
# Role names that have historically been written into the department field.
ROLE_DEPARTMENT_VALUES: Tuple[str, ...] = ("management", "employee", "general")

# Fixed compatibility list of truncated department codes seen in stored data.
LEGACY_DEPARTMENT_ABBREVIATIONS: Dict[str, str] = {
    "SAL": "sales",
    "ENG": "engineering",
    "MAR": "marketing",
    "HR": "hr",
    "FIN": "finance",
}

# --- Local cache layout ---
ASSESSMENTS_KEY: str = "organizational-assessments"
RESPONSES_KEY: str = "organizational-responses"
DEMO_DELETED_FLAG_KEY: str = "demo-assessment-deleted"

# --- Demo assessment ---
DEMO_ASSESSMENT_ID: str = "demo-org"
DEMO_ACCESS_CODE: str = "DEMO-2025-STRATEGY"

# Category assigned when neither the answer nor the question carries one.
FALLBACK_CATEGORY: str = "Other"
