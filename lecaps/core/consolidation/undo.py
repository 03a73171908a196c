from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Union

from lecaps.core.holdings.holding_schema import Holding


@dataclass(frozen=True)
class DeletedLot:
    snapshot: Holding


@dataclass(frozen=True)
class OverwrittenLot:
    snapshot: Holding
    reason: Literal["edit", "merge"] = "edit"


PendingAction = Union[DeletedLot, OverwrittenLot]


@dataclass(frozen=True)
class CollaboratorCall:
    operation: Literal["insert_holding", "update_holding"]
    holding_id: str
    owner_id: str
    fields: dict[str, Any] = field(default_factory=dict)
    holding: Holding | None = None


def apply_undo(action: PendingAction | None) -> list[CollaboratorCall]:
    """
    Collaborator calls that reverse ``action``.

    A deleted lot is re-inserted under its original id. An edited or merged lot
    gets its pre-mutation fields written back; lots removed by a merge are not
    brought back.
    """
    if action is None:
        return []
    snapshot = action.snapshot
    if isinstance(action, DeletedLot):
        return [
            CollaboratorCall(
                operation="insert_holding",
                holding_id=snapshot.id,
                owner_id=snapshot.owner_id,
                holding=snapshot,
            )
        ]
    if isinstance(action, OverwrittenLot):
        return [
            CollaboratorCall(
                operation="update_holding",
                holding_id=snapshot.id,
                owner_id=snapshot.owner_id,
                fields=snapshot.mutable_fields(),
            )
        ]
    raise TypeError(f"unsupported pending action: {type(action).__name__}")


class UndoSlot:
    """Holds at most one pending action; recording a new one discards the old."""

    def __init__(self) -> None:
        self._action: PendingAction | None = None

    def record(self, action: PendingAction) -> None:
        self._action = action

    def peek(self) -> PendingAction | None:
        return self._action

    def take(self) -> PendingAction | None:
        action, self._action = self._action, None
        return action

    def clear(self) -> None:
        self._action = None
