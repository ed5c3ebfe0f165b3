from __future__ import annotations

from typing import Union

from .enums import ComplianceStatus, RequirementWorkflowStatus
from .errors import InvalidStatus

_STATUS_MAP = {
    RequirementWorkflowStatus.APPROVED: ComplianceStatus.COMPLIANT,
    RequirementWorkflowStatus.REVISION_REQUIRED: ComplianceStatus.NON_COMPLIANT,
    RequirementWorkflowStatus.REJECTED: ComplianceStatus.NON_COMPLIANT,
    RequirementWorkflowStatus.SUBMITTED: ComplianceStatus.WARNING,
    RequirementWorkflowStatus.PENDING: ComplianceStatus.PENDING,
    RequirementWorkflowStatus.IN_PROGRESS: ComplianceStatus.PENDING,
}


def parse_workflow_status(value: Union[str, RequirementWorkflowStatus]) -> RequirementWorkflowStatus:
    if isinstance(value, RequirementWorkflowStatus):
        return value
    try:
        return RequirementWorkflowStatus(value)
    except ValueError:
        raise InvalidStatus(
            f"Unrecognized requirement status: {value!r}",
            detail=[
                {
                    "field": "status",
                    "value": value,
                    "allowed": [status.value for status in RequirementWorkflowStatus],
                }
            ],
        )


def map_status(value: Union[str, RequirementWorkflowStatus]) -> ComplianceStatus:
    """Workflow status -> coarse compliance status. Unknown input raises InvalidStatus."""
    return _STATUS_MAP[parse_workflow_status(value)]
