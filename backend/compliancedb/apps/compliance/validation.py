from __future__ import annotations

import os
from typing import Any, List, Mapping, Optional

from .catalog import RequirementDefinition
from .enums import SubmissionKind


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip()) or value == [] or value == {}


def submission_score(submission: Mapping[str, Any]) -> Optional[float]:
    raw = submission.get("score")
    if raw is None:
        raw = (submission.get("fields") or {}).get("score")
    if raw is None or raw == "":
        return None
    try:
        return float(raw)
    except (TypeError, ValueError):
        return None


def validate_submission(definition: RequirementDefinition, submission: Mapping[str, Any]) -> List[str]:
    """
    Check a submission against the requirement's validation rules.

    Submission shape:
        {"fields": {...}, "files": [{"name": "cert.pdf", "size": 1234}], "score": 88, "url": "..."}

    Returns a list of human-readable problems; empty means accepted.
    """
    rules = definition.validation_rules
    fields = submission.get("fields") or {}
    files = submission.get("files") or []
    errors: List[str] = []

    for field_name in rules.required_fields:
        value = fields.get(field_name, submission.get(field_name))
        if _is_blank(value):
            errors.append(f"{field_name} is required")

    if definition.submission_kind == SubmissionKind.FILE_UPLOAD and not files:
        errors.append("At least one file must be uploaded")

    for item in files:
        name = str(item.get("name") or "")
        if rules.file_types:
            ext = os.path.splitext(name)[1].lower()
            if ext not in rules.file_types:
                errors.append(f"{name or 'file'}: file type must be one of {', '.join(rules.file_types)}")
        size = item.get("size")
        if rules.max_file_size is not None and size is not None and size > rules.max_file_size:
            limit_mb = rules.max_file_size / (1024 * 1024)
            errors.append(f"{name or 'file'}: exceeds maximum size of {limit_mb:g} MB")

    if definition.submission_kind == SubmissionKind.EXTERNAL_LINK and _is_blank(submission.get("url")) and not fields:
        errors.append("A completion link or details are required")

    if rules.min_score is not None:
        score = submission_score(submission)
        if score is None:
            if "score" not in rules.required_fields:
                errors.append("score is required")
        elif score < rules.min_score:
            errors.append(f"Minimum score of {rules.min_score:g} required")

    return errors
