"""
Lifecycle policy documents.

A policy has three phases. The hot phase rolls the write index over and
keeps it at high recovery priority; the warm phase lowers the priority and,
when requested, makes rolled-over indices read-only; the delete phase drops
indices once they reach the retention age.

The same models encode the desired document and decode the one stored in
the log store. Sections missing from a stored document decode to empty
values so that they compare unequal to any desired policy.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from logstore_lifecycle.storage.budget import PolicyDetail

HOT_PRIORITY = 100
WARM_PRIORITY = 50


class _PolicyModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class SetPriority(_PolicyModel):
    priority: int


class EmptyAction(_PolicyModel):
    """An action that takes no arguments (readonly, delete)."""


class Rollover(_PolicyModel):
    max_size: str = ""
    max_age: str = ""


class HotActions(_PolicyModel):
    rollover: Rollover = Field(default_factory=Rollover)
    set_priority: SetPriority | None = None


class HotPhase(_PolicyModel):
    actions: HotActions = Field(default_factory=HotActions)


class WarmActions(_PolicyModel):
    set_priority: SetPriority | None = None
    readonly: EmptyAction | None = None


class WarmPhase(_PolicyModel):
    actions: WarmActions = Field(default_factory=WarmActions)


class DeleteActions(_PolicyModel):
    delete: EmptyAction | None = None


class DeletePhase(_PolicyModel):
    min_age: str = ""
    actions: DeleteActions = Field(default_factory=DeleteActions)


class Phases(_PolicyModel):
    hot: HotPhase = Field(default_factory=HotPhase)
    warm: WarmPhase = Field(default_factory=WarmPhase)
    delete: DeletePhase = Field(default_factory=DeletePhase)


class LifecyclePolicy(_PolicyModel):
    """Typed lifecycle policy document."""

    phases: Phases = Field(default_factory=Phases)

    def to_body(self) -> dict[str, Any]:
        """Request body for storing this policy."""
        return {"policy": self.model_dump(exclude_none=True)}

    @classmethod
    def from_observed(cls, policy: dict[str, Any] | None) -> LifecyclePolicy:
        """Decode the ``policy`` section of a stored lifecycle policy."""
        return cls.model_validate(policy or {})

    def detail(self) -> PolicyDetail:
        """Extract the four fields that decide whether a policy must be rewritten."""
        hot = self.phases.hot.actions.rollover
        return PolicyDetail(
            rollover_max_size=hot.max_size,
            rollover_max_age=hot.max_age,
            delete_min_age=self.phases.delete.min_age,
            read_only_after_rollover=self.phases.warm.actions.readonly is not None,
        )


def synthesize(detail: PolicyDetail) -> LifecyclePolicy:
    """
    Build the policy document for a set of thresholds.

    The warm phase carries a readonly action only when
    ``read_only_after_rollover`` is set; otherwise the action is absent.
    """
    return LifecyclePolicy(
        phases=Phases(
            hot=HotPhase(
                actions=HotActions(
                    rollover=Rollover(
                        max_size=detail.rollover_max_size,
                        max_age=detail.rollover_max_age,
                    ),
                    set_priority=SetPriority(priority=HOT_PRIORITY),
                )
            ),
            warm=WarmPhase(
                actions=WarmActions(
                    set_priority=SetPriority(priority=WARM_PRIORITY),
                    readonly=EmptyAction() if detail.read_only_after_rollover else None,
                )
            ),
            delete=DeletePhase(
                min_age=detail.delete_min_age,
                actions=DeleteActions(delete=EmptyAction()),
            ),
        )
    )
