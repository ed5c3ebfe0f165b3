from __future__ import annotations

from types import SimpleNamespace

from compliancedb.apps.compliance.enums import ComplianceStatus
from compliancedb.apps.compliance.summary import summarize


def _record(status, *, mandatory=True, points=10):
    return SimpleNamespace(compliance_status=status, is_mandatory=mandatory, point_value=points)


def test_completion_counts_only_mandatory_records():
    records = [
        _record(ComplianceStatus.COMPLIANT),
        _record(ComplianceStatus.COMPLIANT),
        _record(ComplianceStatus.PENDING),
        _record(ComplianceStatus.COMPLIANT, mandatory=False, points=25),
    ]
    summary = summarize(records)
    assert summary.total == 4
    assert summary.mandatory_total == 3
    assert summary.mandatory_compliant == 2
    assert summary.completion_percentage == 66.7
    assert summary.earned_points == 45
    assert summary.total_points == 55


def test_not_applicable_records_are_ignored():
    records = [
        _record(ComplianceStatus.COMPLIANT),
        _record(ComplianceStatus.NOT_APPLICABLE),
        _record(ComplianceStatus.NOT_APPLICABLE),
    ]
    summary = summarize(records)
    assert summary.total == 1
    assert summary.completion_percentage == 100.0


def test_no_mandatory_records_is_zero_percent():
    summary = summarize([_record(ComplianceStatus.COMPLIANT, mandatory=False)])
    assert summary.completion_percentage == 0.0
    assert summarize([]).completion_percentage == 0.0


def test_status_buckets():
    summary = summarize(
        [
            _record(ComplianceStatus.WARNING),
            _record(ComplianceStatus.NON_COMPLIANT),
            _record(ComplianceStatus.PENDING),
        ]
    )
    assert (summary.warning, summary.non_compliant, summary.pending, summary.compliant) == (1, 1, 1, 0)


def test_exact_completion_is_not_rounded():
    records = [_record(ComplianceStatus.COMPLIANT)] * 2249 + [_record(ComplianceStatus.PENDING)]
    summary = summarize(records)
    assert summary.completion_percentage == 100.0
    assert summary.exact_completion == 2249 * 100 / 2250
    assert summary.exact_completion < 100
