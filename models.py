# models.py
import re
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from config import RISK_COLORS, RISK_LABELS, VALID_ANSWERS

_KEY_RE = re.compile(r"^P[1-9][0-9]*$")


class RiskLevel(str, Enum):
    LOW = "Low"
    MODERATE = "Moderate"
    HIGH = "High"

    @property
    def label(self) -> str:
        return RISK_LABELS[self.value]

    @property
    def color(self) -> str:
        return RISK_COLORS[self.value]


class Organization(BaseModel):
    id: Optional[str] = None
    name: str
    cnpj: str = ""
    employee_count: int = Field(default=0, ge=0)
    sectors: List[str] = []
    functions: List[str] = []
    password: Optional[str] = None
    access_code: str
    created_at: int


class AssessmentSubmission(BaseModel):
    """One respondent's completed questionnaire. Never mutated once written."""

    id: Optional[str] = None
    organization_id: str
    sector: str
    function: str
    submitted_at: int
    answers: Dict[str, int]

    @field_validator("answers")
    @classmethod
    def _check_answers(cls, v):
        for key, value in v.items():
            if not _KEY_RE.match(key):
                raise ValueError(f"invalid question key {key!r}")
            if value not in VALID_ANSWERS:
                raise ValueError(f"invalid answer {value!r} for {key}")
        return v


class TechnicalReviewer(BaseModel):
    id: Optional[str] = None
    name: str
    registration_number: str
    updated_at: int


class DomainResult(BaseModel):
    """Derived per-domain result; recomputed on demand, never stored."""

    domain: str
    score: int = Field(ge=0, le=100)
    classification: RiskLevel

    @property
    def severity(self) -> RiskLevel:
        return self.classification

    @property
    def probability(self) -> RiskLevel:
        return self.classification
