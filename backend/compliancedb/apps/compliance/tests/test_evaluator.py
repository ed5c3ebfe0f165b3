from __future__ import annotations

import math
from types import SimpleNamespace

import pytest

from compliancedb.apps.compliance.enums import ComplianceStatus, ComplianceTier, PractitionerRole
from compliancedb.apps.compliance.errors import UnknownTemplate, ValidationError
from compliancedb.apps.compliance.evaluator import evaluate_tier_advancement
from compliancedb.apps.compliance.policy import DEFAULT_POLICY, TierPolicy
from compliancedb.apps.compliance.summary import summarize


def _percentages():
    return [step / 2 for step in range(0, 201)]


def test_basic_eligibility_matches_threshold_for_all_percentages():
    for p in _percentages():
        decision = evaluate_tier_advancement(ComplianceTier.BASIC, p)
        assert decision.eligible == (p >= 90), p
        assert decision.next_tier == ComplianceTier.ROBUST
        assert decision.required_percentage == 90


def test_robust_is_never_eligible():
    for p in _percentages():
        decision = evaluate_tier_advancement(ComplianceTier.ROBUST, p)
        assert decision.eligible is False
        assert decision.next_tier is None
        assert decision.message == "You are at the highest tier level"


def test_messages():
    below = evaluate_tier_advancement("basic", 66.7)
    assert below.message == "You need 90% completion to advance to robust"
    at = evaluate_tier_advancement("basic", 90)
    assert at.message == "You are eligible to advance to robust!"


@pytest.mark.parametrize("bad", [-0.1, 100.1, math.nan])
def test_out_of_range_percentage_rejected(bad):
    with pytest.raises(ValidationError):
        evaluate_tier_advancement(ComplianceTier.BASIC, bad)


def test_policy_threshold_is_configurable():
    policy = TierPolicy(default_tiers=DEFAULT_POLICY.default_tiers, advancement_threshold=75)
    assert evaluate_tier_advancement(ComplianceTier.BASIC, 75, policy).eligible is True
    assert evaluate_tier_advancement(ComplianceTier.BASIC, 74.9, policy).eligible is False


def test_default_tier_table():
    assert DEFAULT_POLICY.default_tier(PractitionerRole.IT) == ComplianceTier.BASIC
    assert DEFAULT_POLICY.default_tier(PractitionerRole.IP) == ComplianceTier.BASIC
    assert DEFAULT_POLICY.default_tier(PractitionerRole.IC) == ComplianceTier.BASIC
    assert DEFAULT_POLICY.default_tier(PractitionerRole.AP) == ComplianceTier.ROBUST


def test_decision_as_dict_uses_plain_values():
    payload = evaluate_tier_advancement(ComplianceTier.BASIC, 95).as_dict()
    assert payload["current_tier"] == "basic"
    assert payload["next_tier"] == "robust"
    assert payload["eligible"] is True


def test_role_missing_from_policy_is_unknown_template():
    policy = TierPolicy(default_tiers={PractitionerRole.IT: ComplianceTier.BASIC})
    with pytest.raises(UnknownTemplate) as excinfo:
        policy.default_tier(PractitionerRole.AP)
    assert excinfo.value.detail == [{"field": "role", "value": "AP"}]


def test_eligibility_uses_unrounded_completion():
    records = [SimpleNamespace(compliance_status=ComplianceStatus.COMPLIANT, is_mandatory=True, point_value=1)] * 2249
    records += [SimpleNamespace(compliance_status=ComplianceStatus.PENDING, is_mandatory=True, point_value=1)] * 251
    summary = summarize(records)

    # 89.96% displays as 90.0 but is still below the bar.
    assert summary.completion_percentage == 90.0
    decision = evaluate_tier_advancement(ComplianceTier.BASIC, summary.exact_completion)
    assert decision.eligible is False
    assert decision.current_percentage == 90.0
