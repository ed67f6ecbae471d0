"""
Plan model — the ordered, immutable list of Actions for one run.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from dotinstall.core.models.action import Action


class Plan(BaseModel):
    """Actions in dependency order, built once per run by the resolver."""

    model_config = ConfigDict(frozen=True)

    name: str
    family: str
    actions: tuple[Action, ...] = ()
    excluded: tuple[str, ...] = ()      # entries with no method for this family
    extras: tuple[str, ...] = ()        # optional groups selected for this run

    @property
    def total_actions(self) -> int:
        return len(self.actions)
