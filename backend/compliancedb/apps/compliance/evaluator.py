from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Optional

from .enums import ComplianceTier
from .errors import ValidationError
from .policy import DEFAULT_POLICY, TierPolicy


@dataclass(frozen=True)
class TierAdvancementDecision:
    current_tier: ComplianceTier
    eligible: bool
    next_tier: Optional[ComplianceTier]
    required_percentage: Optional[float]
    current_percentage: float
    message: str

    def as_dict(self) -> dict:
        payload = asdict(self)
        payload["current_tier"] = self.current_tier.value
        payload["next_tier"] = self.next_tier.value if self.next_tier else None
        return payload


def evaluate_tier_advancement(
    current_tier: ComplianceTier,
    completion_percentage: float,
    policy: TierPolicy = DEFAULT_POLICY,
) -> TierAdvancementDecision:
    current_tier = ComplianceTier(current_tier)
    if completion_percentage is None or math.isnan(completion_percentage) or not 0 <= completion_percentage <= 100:
        raise ValidationError(
            f"Completion percentage must be between 0 and 100, got {completion_percentage!r}",
            detail=[{"field": "completion_percentage", "value": completion_percentage}],
        )

    next_tier = policy.next_tier(current_tier)
    if next_tier is None:
        return TierAdvancementDecision(
            current_tier=current_tier,
            eligible=False,
            next_tier=None,
            required_percentage=None,
            current_percentage=round(completion_percentage, 1),
            message="You are at the highest tier level",
        )

    required = policy.advancement_threshold
    eligible = completion_percentage >= required
    if eligible:
        message = f"You are eligible to advance to {next_tier.value}!"
    else:
        message = f"You need {required:g}% completion to advance to {next_tier.value}"

    return TierAdvancementDecision(
        current_tier=current_tier,
        eligible=eligible,
        next_tier=next_tier,
        required_percentage=required,
        current_percentage=round(completion_percentage, 1),
        message=message,
    )
