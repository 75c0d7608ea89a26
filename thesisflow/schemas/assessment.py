"""Reviewer rubric: Section I criteria levels and Section II commentary.

Completeness is never stored. Every check below is derived from the current
field values so the stored snapshot and the API view cannot disagree.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from thesisflow.models.enums import CriterionLevel, FinalGrade

CRITERIA_KEYS = (
    "topic_correspondence",
    "relevance_justification",
    "subject_area_correspondence",
    "research_methods_correctness",
    "material_presentation",
    "assertions_justification",
    "research_value",
    "research_findings_integration",
)

MIN_QUESTIONS = 2


def _blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


class Conclusion(BaseModel):
    final_assessment: str = ""
    # None means the reviewer has not answered yet
    is_complete: Optional[bool] = None
    degree_worthy: Optional[bool] = None


class SectionTwo(BaseModel):
    questions: List[str] = Field(default_factory=list)
    advantages: str = ""
    disadvantages: str = ""
    critique: List[str] = Field(default_factory=list)
    conclusion: Conclusion = Field(default_factory=Conclusion)


class Rubric(BaseModel):
    """Two-section assessment form.

    ``section_one`` maps each criterion key to a level; a missing key or a
    ``None`` value counts as unanswered.
    """

    section_one: Dict[str, Optional[CriterionLevel]] = Field(default_factory=dict)
    section_two: SectionTwo = Field(default_factory=SectionTwo)

    @field_validator("section_one", mode="before")
    @classmethod
    def known_criteria_only(cls, value):
        if isinstance(value, dict):
            unknown = sorted(set(value) - set(CRITERIA_KEYS))
            if unknown:
                raise ValueError(f"Unknown criteria: {', '.join(unknown)}")
            return {key: level or None for key, level in value.items()}
        return value

    def _missing_section_one(self) -> List[str]:
        return [
            f"section_one.{key}"
            for key in CRITERIA_KEYS
            if not self.section_one.get(key)
        ]

    def _missing_section_two(self) -> List[str]:
        two = self.section_two
        missing: List[str] = []
        answered = [q for q in two.questions if not _blank(q)]
        if len(answered) < MIN_QUESTIONS:
            missing.append("section_two.questions")
        if _blank(two.advantages):
            missing.append("section_two.advantages")
        if _blank(two.disadvantages):
            missing.append("section_two.disadvantages")
        if _blank(two.conclusion.final_assessment):
            missing.append("section_two.conclusion.final_assessment")
        if two.conclusion.degree_worthy is None:
            missing.append("section_two.conclusion.degree_worthy")
        return missing

    def is_section_one_complete(self) -> bool:
        return not self._missing_section_one()

    def is_section_two_complete(self) -> bool:
        return not self._missing_section_two()

    def can_select_grade(self) -> bool:
        """Grade selector unlocks only once both sections are complete."""
        return self.is_section_one_complete() and self.is_section_two_complete()

    def can_finalize(self, grade: Optional[str]) -> bool:
        if grade is None or not self.can_select_grade():
            return False
        try:
            FinalGrade(grade)
        except ValueError:
            return False
        return True

    def missing_fields(self) -> List[str]:
        """Dotted paths of every unanswered item, Section I first."""
        return self._missing_section_one() + self._missing_section_two()


class RubricView(BaseModel):
    """Rubric plus its derived completeness, as shown to the reviewer."""

    rubric: Rubric
    final_grade: Optional[FinalGrade] = None
    section_one_complete: bool
    section_two_complete: bool
    can_select_grade: bool
    missing_fields: List[str]
    grade_scale: List[str] = Field(default_factory=lambda: [g.value for g in FinalGrade])

    @classmethod
    def build(cls, rubric: Rubric, final_grade: Optional[FinalGrade] = None) -> "RubricView":
        return cls(
            rubric=rubric,
            final_grade=final_grade,
            section_one_complete=rubric.is_section_one_complete(),
            section_two_complete=rubric.is_section_two_complete(),
            can_select_grade=rubric.can_select_grade(),
            missing_fields=rubric.missing_fields(),
        )
