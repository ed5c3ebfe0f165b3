from __future__ import annotations

import pytest

from compliancedb.apps.compliance.enums import ComplianceStatus, RequirementWorkflowStatus
from compliancedb.apps.compliance.errors import InvalidStatus, ValidationError
from compliancedb.apps.compliance.mapper import map_status, parse_workflow_status


@pytest.mark.parametrize(
    "workflow_status, expected",
    [
        ("approved", ComplianceStatus.COMPLIANT),
        ("revision_required", ComplianceStatus.NON_COMPLIANT),
        ("rejected", ComplianceStatus.NON_COMPLIANT),
        ("submitted", ComplianceStatus.WARNING),
        ("pending", ComplianceStatus.PENDING),
        ("in_progress", ComplianceStatus.PENDING),
    ],
)
def test_map_status_table(workflow_status, expected):
    assert map_status(workflow_status) == expected
    assert map_status(RequirementWorkflowStatus(workflow_status)) == expected


def test_map_status_is_total_over_workflow_statuses():
    mapped = {status: map_status(status) for status in RequirementWorkflowStatus}
    assert set(mapped) == set(RequirementWorkflowStatus)
    assert ComplianceStatus.NOT_APPLICABLE not in mapped.values()


@pytest.mark.parametrize("bad", ["done", "", "APPROVED", "compliant", None])
def test_unrecognized_status_raises_invalid_status(bad):
    with pytest.raises(InvalidStatus) as exc_info:
        map_status(bad)
    assert isinstance(exc_info.value, ValidationError)
    assert exc_info.value.detail[0]["field"] == "status"


def test_parse_workflow_status_passes_enum_through():
    assert parse_workflow_status(RequirementWorkflowStatus.SUBMITTED) is RequirementWorkflowStatus.SUBMITTED
