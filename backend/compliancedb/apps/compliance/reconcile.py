"""
The single routine that aligns a user's active requirement set with the
template for a (role, tier).

Used by tier switches, role changes, initialization and reprovisioning.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from .catalog import RequirementDefinition, RequirementTemplate, get_requirement_template
from .enums import ComplianceStatus, ComplianceTier, PractitionerRole, RequirementWorkflowStatus


@dataclass(frozen=True)
class ReconcilePlan:
    add: Tuple[RequirementDefinition, ...] = ()
    reactivate: Tuple[RequirementDefinition, ...] = ()
    retire: Tuple[str, ...] = ()
    unchanged: Tuple[str, ...] = ()

    @property
    def is_noop(self) -> bool:
        return not (self.add or self.reactivate or self.retire)


@dataclass
class ReconcileResult:
    role: PractitionerRole
    tier: ComplianceTier
    added: List[str] = field(default_factory=list)
    reactivated: List[str] = field(default_factory=list)
    retired: List[str] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.added or self.reactivated or self.retired)

    def as_dict(self) -> dict:
        return {
            "role": self.role.value,
            "tier": self.tier.value,
            "added": list(self.added),
            "reactivated": list(self.reactivated),
            "retired": list(self.retired),
            "unchanged": list(self.unchanged),
        }


def plan_reconciliation(template: RequirementTemplate, records: Iterable) -> ReconcilePlan:
    """
    Pure diff between existing records and a template.

    - template requirement with no record -> add
    - template requirement whose record is not_applicable -> reactivate
    - active record outside the template -> retire
    """
    by_id = {record.requirement_id: record for record in records}
    wanted = set(template.requirement_ids)

    add: List[RequirementDefinition] = []
    reactivate: List[RequirementDefinition] = []
    unchanged: List[str] = []
    for definition in template.requirements:
        record = by_id.get(definition.requirement_id)
        if record is None:
            add.append(definition)
        elif ComplianceStatus(record.compliance_status) == ComplianceStatus.NOT_APPLICABLE:
            reactivate.append(definition)
        else:
            unchanged.append(definition.requirement_id)

    retire = sorted(
        requirement_id
        for requirement_id, record in by_id.items()
        if requirement_id not in wanted
        and ComplianceStatus(record.compliance_status) != ComplianceStatus.NOT_APPLICABLE
    )
    return ReconcilePlan(add=tuple(add), reactivate=tuple(reactivate), retire=tuple(retire), unchanged=tuple(unchanged))


def reconcile_requirement_set(
    store,
    user_id: str,
    role: PractitionerRole,
    tier: ComplianceTier,
    *,
    now: Optional[datetime] = None,
    retire_note: Optional[str] = None,
) -> ReconcileResult:
    """
    Apply plan_reconciliation through the store. Idempotent: a second call
    with the same (role, tier) finds nothing to add, reactivate or retire.
    """
    role = PractitionerRole(role)
    tier = ComplianceTier(tier)
    template = get_requirement_template(role, tier)
    plan = plan_reconciliation(template, store.list_compliance_records(user_id))

    for definition in plan.add + plan.reactivate:
        store.upsert_compliance_record(
            user_id,
            definition,
            role=role,
            tier=tier,
            workflow_status=RequirementWorkflowStatus.PENDING,
            reset=True,
            now=now,
        )
    store.set_records_not_applicable(
        user_id,
        plan.retire,
        note=retire_note or f"Superseded by {role.value}/{tier.value} requirements",
    )

    return ReconcileResult(
        role=role,
        tier=tier,
        added=[d.requirement_id for d in plan.add],
        reactivated=[d.requirement_id for d in plan.reactivate],
        retired=list(plan.retire),
        unchanged=list(plan.unchanged),
    )
