from __future__ import annotations

import os
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional

from .enums import ComplianceTier, PractitionerRole
from .errors import UnknownTemplate

ADVANCEMENT_THRESHOLD = float(os.getenv("COMPLIANCE_ADVANCEMENT_THRESHOLD", "90"))
DEADLINE_WARNING_DAYS = int(os.getenv("COMPLIANCE_DEADLINE_WARNING_DAYS", "7"))


@dataclass(frozen=True)
class TierPolicy:
    """
    Role -> default tier table plus the advancement path.

    Adding a role means adding a row here; orchestrators only consult the policy.
    """

    default_tiers: Mapping[PractitionerRole, ComplianceTier]
    next_tiers: Mapping[ComplianceTier, ComplianceTier] = field(
        default_factory=lambda: MappingProxyType({ComplianceTier.BASIC: ComplianceTier.ROBUST})
    )
    advancement_threshold: float = ADVANCEMENT_THRESHOLD

    def default_tier(self, role: PractitionerRole) -> ComplianceTier:
        role = PractitionerRole(role)
        try:
            return self.default_tiers[role]
        except KeyError:
            raise UnknownTemplate(
                f"No default tier configured for role {role.value}",
                detail=[{"field": "role", "value": role.value}],
            )

    def next_tier(self, tier: ComplianceTier) -> Optional[ComplianceTier]:
        return self.next_tiers.get(ComplianceTier(tier))


DEFAULT_POLICY = TierPolicy(
    default_tiers=MappingProxyType(
        {
            PractitionerRole.IT: ComplianceTier.BASIC,
            PractitionerRole.IP: ComplianceTier.BASIC,
            PractitionerRole.IC: ComplianceTier.BASIC,
            PractitionerRole.AP: ComplianceTier.ROBUST,
        }
    ),
)


def default_tier(role: PractitionerRole, policy: TierPolicy = DEFAULT_POLICY) -> ComplianceTier:
    return policy.default_tier(role)
