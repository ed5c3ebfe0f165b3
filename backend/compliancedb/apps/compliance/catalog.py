# backend/compliancedb/apps/compliance/catalog.py
"""
Static requirement template catalog.

One template per (role, tier). Each template owns an ordered tuple of
RequirementDefinition. Requirement ids are stable slugs of the form
"<role>-<tier>-<name>" so records survive catalog reloads.

Pure lookup: nothing here touches the database.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from .enums import ComplianceTier, PractitionerRole, RequirementType, SubmissionKind
from .errors import UnknownTemplate

MB = 1024 * 1024


@dataclass(frozen=True)
class ValidationRules:
    file_types: Tuple[str, ...] = ()
    max_file_size: Optional[int] = None
    required_fields: Tuple[str, ...] = ()
    min_score: Optional[float] = None

    def as_dict(self) -> dict:
        payload: dict = {}
        if self.file_types:
            payload["file_types"] = list(self.file_types)
        if self.max_file_size is not None:
            payload["max_file_size"] = self.max_file_size
        if self.required_fields:
            payload["required_fields"] = list(self.required_fields)
        if self.min_score is not None:
            payload["min_score"] = self.min_score
        return payload


@dataclass(frozen=True)
class RequirementDefinition:
    requirement_id: str
    name: str
    description: str
    category: str
    requirement_type: RequirementType
    submission_kind: SubmissionKind
    mandatory: bool
    point_value: int
    due_days_from_assignment: int
    display_order: int
    validation_rules: ValidationRules = field(default_factory=ValidationRules)


@dataclass(frozen=True)
class RequirementTemplate:
    role: PractitionerRole
    tier: ComplianceTier
    template_name: str
    description: str
    requirements: Tuple[RequirementDefinition, ...]

    @property
    def requirement_ids(self) -> Tuple[str, ...]:
        return tuple(req.requirement_id for req in self.requirements)

    @property
    def mandatory_ids(self) -> Tuple[str, ...]:
        return tuple(req.requirement_id for req in self.requirements if req.mandatory)


def _slug(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")


def _req(
    name: str,
    description: str,
    category: str,
    requirement_type: RequirementType,
    submission_kind: SubmissionKind,
    *,
    points: int,
    due_days: int,
    mandatory: bool = True,
    rules: Optional[ValidationRules] = None,
) -> dict:
    return {
        "name": name,
        "description": description,
        "category": category,
        "requirement_type": requirement_type,
        "submission_kind": submission_kind,
        "mandatory": mandatory,
        "point_value": points,
        "due_days_from_assignment": due_days,
        "validation_rules": rules or ValidationRules(),
    }


TEMPLATES: Dict[Tuple[PractitionerRole, ComplianceTier], RequirementTemplate] = {}
_REQUIREMENT_INDEX: Dict[str, Tuple[RequirementTemplate, RequirementDefinition]] = {}


def _register(
    role: PractitionerRole,
    tier: ComplianceTier,
    template_name: str,
    description: str,
    entries: Iterable[dict],
) -> None:
    key = (role, tier)
    if key in TEMPLATES:
        raise ValueError(f"Duplicate requirement template for {role.value}/{tier.value}")

    requirements: List[RequirementDefinition] = []
    for order, entry in enumerate(entries, start=1):
        requirement_id = f"{role.value.lower()}-{tier.value}-{_slug(entry['name'])}"
        if requirement_id in _REQUIREMENT_INDEX:
            raise ValueError(f"Duplicate requirement id {requirement_id}")
        requirements.append(RequirementDefinition(requirement_id=requirement_id, display_order=order, **entry))

    template = RequirementTemplate(
        role=role,
        tier=tier,
        template_name=template_name,
        description=description,
        requirements=tuple(requirements),
    )
    TEMPLATES[key] = template
    for requirement in template.requirements:
        _REQUIREMENT_INDEX[requirement.requirement_id] = (template, requirement)


R = RequirementType
K = SubmissionKind
V = ValidationRules

# ---------------------------------------------------------------------------
# IT - Instructor Trainee
# ---------------------------------------------------------------------------

_register(
    PractitionerRole.IT,
    ComplianceTier.BASIC,
    "Instructor Trainee - Basic",
    "Essential certifications and checks for instructor trainees.",
    [
        _req(
            "CPR/AED Certification",
            "Current CPR and AED certification from approved provider",
            "certification", R.CERTIFICATION, K.FILE_UPLOAD,
            points=20, due_days=30,
            rules=V(file_types=(".pdf", ".jpg", ".png"), max_file_size=5 * MB, required_fields=("expiry_date",)),
        ),
        _req(
            "Water Safety Training",
            "Complete water safety fundamentals course",
            "training", R.TRAINING, K.EXTERNAL_LINK,
            points=15, due_days=45,
            rules=V(min_score=80, required_fields=("completion_date", "score")),
        ),
        _req(
            "Background Check",
            "Submit criminal background check documentation",
            "documentation", R.DOCUMENT, K.FILE_UPLOAD,
            points=10, due_days=15,
            rules=V(file_types=(".pdf",), max_file_size=10 * MB),
        ),
    ],
)

_register(
    PractitionerRole.IT,
    ComplianceTier.ROBUST,
    "Instructor Trainee - Robust",
    "Advanced training and supervised practicum for instructor trainees.",
    [
        _req(
            "Advanced Lifeguard Training",
            "Complete advanced lifeguarding techniques course",
            "training", R.TRAINING, K.FORM,
            points=25, due_days=60,
            rules=V(min_score=85, required_fields=("completion_date", "score", "instructor_name")),
        ),
        _req(
            "Teaching Methodology",
            "Complete instructional design and teaching methods course",
            "pedagogy", R.TRAINING, K.FORM,
            points=20, due_days=90,
            rules=V(min_score=80, required_fields=("completion_date", "final_project")),
        ),
        _req(
            "Practical Teaching Assessment",
            "Complete supervised teaching practicum",
            "assessment", R.ASSESSMENT, K.FORM,
            points=30, due_days=120,
            rules=V(min_score=75, required_fields=("assessment_date", "evaluator", "score")),
        ),
    ],
)

# ---------------------------------------------------------------------------
# IP - Instructor Provisional
# ---------------------------------------------------------------------------

_register(
    PractitionerRole.IP,
    ComplianceTier.BASIC,
    "Instructor Provisional - Basic",
    "Credentials and teaching log for provisional instructors.",
    [
        _req(
            "Instructor Certification",
            "Current instructor certification documentation",
            "certification", R.CERTIFICATION, K.FILE_UPLOAD,
            points=25, due_days=15,
            rules=V(file_types=(".pdf", ".jpg", ".png"), max_file_size=5 * MB),
        ),
        _req(
            "Teaching Log",
            "Log of teaching hours and classes taught",
            "documentation", R.DOCUMENT, K.FORM,
            points=15, due_days=30,
            rules=V(required_fields=("class_date", "class_type", "student_count", "hours")),
        ),
        _req(
            "Provisional Assessment",
            "Complete provisional teaching assessment",
            "assessment", R.ASSESSMENT, K.EXTERNAL_LINK,
            points=20, due_days=60,
            rules=V(min_score=70),
        ),
    ],
)

_register(
    PractitionerRole.IP,
    ComplianceTier.ROBUST,
    "Instructor Provisional - Robust",
    "Portfolio, observation and development plan for provisional instructors.",
    [
        _req(
            "Advanced Teaching Certification",
            "Advanced teaching methodology certification",
            "certification", R.CERTIFICATION, K.FILE_UPLOAD,
            points=30, due_days=45,
            rules=V(file_types=(".pdf",), max_file_size=10 * MB),
        ),
        _req(
            "Teaching Portfolio",
            "Portfolio of teaching materials and student outcomes",
            "portfolio", R.DOCUMENT, K.FORM,
            points=25, due_days=90,
            rules=V(required_fields=("portfolio_url", "student_outcomes", "teaching_materials")),
        ),
        _req(
            "Mentor Observation",
            "Teaching session observed by mentor",
            "assessment", R.ASSESSMENT, K.FORM,
            points=20, due_days=60,
            rules=V(required_fields=("observation_date", "mentor_name", "feedback")),
        ),
        _req(
            "Student Feedback Collection",
            "Collect and analyze student feedback",
            "documentation", R.DOCUMENT, K.FORM,
            points=15, due_days=75,
            rules=V(required_fields=("student_count", "average_rating", "feedback_summary")),
        ),
        _req(
            "Advanced Teaching Methods Course",
            "Complete advanced teaching methodology course",
            "training", R.TRAINING, K.EXTERNAL_LINK,
            points=25, due_days=120,
            rules=V(min_score=80),
        ),
        _req(
            "Professional Development Plan",
            "Create a professional development plan",
            "planning", R.DOCUMENT, K.FORM,
            points=10, due_days=45,
            rules=V(required_fields=("goals", "timeline", "resources_needed")),
        ),
    ],
)

# ---------------------------------------------------------------------------
# IC - Instructor Certified
# ---------------------------------------------------------------------------

_register(
    PractitionerRole.IC,
    ComplianceTier.BASIC,
    "Instructor Certified - Basic",
    "Ongoing credential maintenance for certified instructors.",
    [
        _req(
            "Current Instructor Credentials",
            "Maintain current instructor certification",
            "certification", R.CERTIFICATION, K.FILE_UPLOAD,
            points=30, due_days=30,
            rules=V(file_types=(".pdf", ".jpg", ".png"), max_file_size=5 * MB),
        ),
        _req(
            "Teaching Hours Log",
            "Documentation of teaching hours",
            "documentation", R.DOCUMENT, K.FORM,
            points=25, due_days=90,
            rules=V(required_fields=("hours_taught", "class_types", "dates")),
        ),
        _req(
            "Student Outcomes Report",
            "Report on student certification pass rates",
            "performance", R.DOCUMENT, K.FORM,
            points=20, due_days=120,
            rules=V(required_fields=("student_count", "pass_rate", "average_score")),
        ),
        _req(
            "Continuing Education",
            "Complete required continuing education",
            "training", R.TRAINING, K.FILE_UPLOAD,
            points=25, due_days=180,
            rules=V(file_types=(".pdf",), max_file_size=5 * MB),
        ),
    ],
)

_register(
    PractitionerRole.IC,
    ComplianceTier.ROBUST,
    "Instructor Certified - Robust",
    "Master-level credentials, mentorship and research for certified instructors.",
    [
        _req(
            "Master Instructor Certification",
            "Advanced instructor certification",
            "certification", R.CERTIFICATION, K.FILE_UPLOAD,
            points=40, due_days=60,
            rules=V(file_types=(".pdf",), max_file_size=10 * MB),
        ),
        _req(
            "Specialized Teaching Credential",
            "Specialized teaching credential in advanced areas",
            "certification", R.CERTIFICATION, K.FILE_UPLOAD,
            points=35, due_days=90,
            rules=V(file_types=(".pdf", ".jpg", ".png"), max_file_size=10 * MB),
        ),
        _req(
            "Instructor Development Course",
            "Advanced course for developing other instructors",
            "training", R.TRAINING, K.EXTERNAL_LINK,
            points=30, due_days=120,
            rules=V(min_score=85),
        ),
        _req(
            "Course Development Portfolio",
            "Portfolio of course materials developed",
            "portfolio", R.DOCUMENT, K.FORM,
            points=25, due_days=180,
            rules=V(required_fields=("course_names", "materials_link", "development_process")),
        ),
        _req(
            "Mentorship Documentation",
            "Documentation of mentoring junior instructors",
            "mentorship", R.DOCUMENT, K.FORM,
            points=20, due_days=90,
            rules=V(required_fields=("mentee_names", "mentorship_hours", "development_areas")),
        ),
        _req(
            "Advanced Assessment Methods",
            "Training in advanced student assessment methods",
            "training", R.TRAINING, K.EXTERNAL_LINK,
            points=25, due_days=150,
            rules=V(min_score=80),
        ),
        _req(
            "Quality Improvement Project",
            "Implementation of teaching quality improvement project",
            "project", R.DOCUMENT, K.FORM,
            points=30, due_days=240,
            rules=V(required_fields=("project_title", "implementation_details", "outcomes")),
        ),
        _req(
            "Research Contribution",
            "Contribution to teaching methodology research",
            "research", R.DOCUMENT, K.FILE_UPLOAD,
            points=25, due_days=365, mandatory=False,
            rules=V(file_types=(".pdf", ".docx"), max_file_size=15 * MB),
        ),
    ],
)

# ---------------------------------------------------------------------------
# AP - Authorized Provider
# ---------------------------------------------------------------------------

_register(
    PractitionerRole.AP,
    ComplianceTier.BASIC,
    "Authorized Provider - Basic",
    "Provider certification, facility and roster documentation.",
    [
        _req(
            "Provider Certification",
            "Current authorized provider certification",
            "certification", R.CERTIFICATION, K.FILE_UPLOAD,
            points=30, due_days=30,
            rules=V(file_types=(".pdf",), max_file_size=10 * MB),
        ),
        _req(
            "Facility Documentation",
            "Documentation of facility requirements compliance",
            "documentation", R.DOCUMENT, K.FILE_UPLOAD,
            points=25, due_days=45,
            rules=V(file_types=(".pdf", ".jpg", ".png"), max_file_size=10 * MB),
        ),
        _req(
            "Instructor Roster",
            "Current roster of certified instructors",
            "documentation", R.DOCUMENT, K.FORM,
            points=20, due_days=60,
            rules=V(required_fields=("instructor_names", "certification_numbers", "expiry_dates")),
        ),
    ],
)

_register(
    PractitionerRole.AP,
    ComplianceTier.ROBUST,
    "Authorized Provider - Robust",
    "Quality management, outcomes analysis and outreach for authorized providers.",
    [
        _req(
            "Quality Management System",
            "Documentation of quality management system",
            "quality", R.DOCUMENT, K.FILE_UPLOAD,
            points=35, due_days=90,
            rules=V(file_types=(".pdf", ".docx"), max_file_size=15 * MB),
        ),
        _req(
            "Advanced Provider Certification",
            "Comprehensive provider certification",
            "certification", R.CERTIFICATION, K.FILE_UPLOAD,
            points=30, due_days=45,
            rules=V(file_types=(".pdf",), max_file_size=10 * MB),
        ),
        _req(
            "Instructor Development Program",
            "Documentation of instructor development program",
            "training", R.DOCUMENT, K.FORM,
            points=25, due_days=120,
            rules=V(required_fields=("program_details", "implementation_plan", "success_metrics")),
        ),
        _req(
            "Student Outcomes Analysis",
            "Comprehensive analysis of student outcomes",
            "performance", R.DOCUMENT, K.FORM,
            points=25, due_days=180,
            rules=V(required_fields=("success_rate", "analysis_period", "improvement_actions")),
        ),
        _req(
            "Facility Excellence Certification",
            "Advanced facility standards certification",
            "certification", R.CERTIFICATION, K.FILE_UPLOAD,
            points=20, due_days=90,
            rules=V(file_types=(".pdf", ".jpg", ".png"), max_file_size=10 * MB),
        ),
        _req(
            "Community Outreach Program",
            "Documentation of community engagement initiatives",
            "outreach", R.DOCUMENT, K.FORM,
            points=15, due_days=240, mandatory=False,
            rules=V(required_fields=("program_name", "activities", "impact_metrics")),
        ),
        _req(
            "Advanced Reporting System",
            "Implementation of comprehensive reporting system",
            "administration", R.DOCUMENT, K.FORM,
            points=20, due_days=150,
            rules=V(required_fields=("system_details", "report_examples", "data_security")),
        ),
    ],
)


# ---------------------------------------------------------------------------
# LOOKUPS
# ---------------------------------------------------------------------------


def get_requirement_template(role: PractitionerRole, tier: ComplianceTier) -> RequirementTemplate:
    template = TEMPLATES.get((PractitionerRole(role), ComplianceTier(tier)))
    if template is None:
        raise UnknownTemplate(
            f"No requirement template for role {PractitionerRole(role).value}, tier {ComplianceTier(tier).value}",
            detail=[{"field": "role/tier", "reason": "no template registered"}],
        )
    return template


def get_template(role: PractitionerRole, tier: ComplianceTier) -> Tuple[RequirementDefinition, ...]:
    return get_requirement_template(role, tier).requirements


def get_requirement(requirement_id: str) -> Optional[RequirementDefinition]:
    entry = _REQUIREMENT_INDEX.get(requirement_id)
    return entry[1] if entry else None


def templates_for_role(role: PractitionerRole) -> List[RequirementTemplate]:
    role = PractitionerRole(role)
    return [template for (template_role, _), template in TEMPLATES.items() if template_role == role]


def total_points(role: PractitionerRole, tier: ComplianceTier) -> int:
    return sum(req.point_value for req in get_template(role, tier))


def count_requirements(role: PractitionerRole, tier: ComplianceTier) -> int:
    return len(get_template(role, tier))
