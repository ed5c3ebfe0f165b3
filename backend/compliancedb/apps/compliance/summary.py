from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Iterable

from .enums import ComplianceStatus


@dataclass(frozen=True)
class ComplianceSummary:
    total: int
    compliant: int
    non_compliant: int
    warning: int
    pending: int
    mandatory_total: int
    mandatory_compliant: int
    completion_percentage: float
    earned_points: int
    total_points: int

    @property
    def exact_completion(self) -> float:
        """Unrounded completion; eligibility is judged on this, never the display value."""
        if not self.mandatory_total:
            return 0.0
        return self.mandatory_compliant * 100 / self.mandatory_total

    def as_dict(self) -> dict:
        return asdict(self)


def summarize(records: Iterable) -> ComplianceSummary:
    """
    Aggregate the active (non not_applicable) records of one user.

    Completion is the share of mandatory records that are compliant, rounded
    to one decimal; a user with no mandatory records sits at 0.0.
    """
    counts = {
        ComplianceStatus.COMPLIANT: 0,
        ComplianceStatus.NON_COMPLIANT: 0,
        ComplianceStatus.WARNING: 0,
        ComplianceStatus.PENDING: 0,
    }
    total = mandatory_total = mandatory_compliant = 0
    earned_points = total_points = 0

    for record in records:
        status = ComplianceStatus(record.compliance_status)
        if status == ComplianceStatus.NOT_APPLICABLE:
            continue
        total += 1
        counts[status] += 1
        points = record.point_value or 0
        total_points += points
        if status == ComplianceStatus.COMPLIANT:
            earned_points += points
        if record.is_mandatory:
            mandatory_total += 1
            if status == ComplianceStatus.COMPLIANT:
                mandatory_compliant += 1

    completion = round(mandatory_compliant * 100 / mandatory_total, 1) if mandatory_total else 0.0

    return ComplianceSummary(
        total=total,
        compliant=counts[ComplianceStatus.COMPLIANT],
        non_compliant=counts[ComplianceStatus.NON_COMPLIANT],
        warning=counts[ComplianceStatus.WARNING],
        pending=counts[ComplianceStatus.PENDING],
        mandatory_total=mandatory_total,
        mandatory_compliant=mandatory_compliant,
        completion_percentage=completion,
        earned_points=earned_points,
        total_points=total_points,
    )
