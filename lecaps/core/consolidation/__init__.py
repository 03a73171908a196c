from lecaps.core.consolidation.lot_consolidator import ConsolidationResult, Insert, MergeInto, consolidate
from lecaps.core.consolidation.undo import (
    CollaboratorCall,
    DeletedLot,
    OverwrittenLot,
    PendingAction,
    UndoSlot,
    apply_undo,
)

__all__ = [
    "CollaboratorCall",
    "ConsolidationResult",
    "DeletedLot",
    "Insert",
    "MergeInto",
    "OverwrittenLot",
    "PendingAction",
    "UndoSlot",
    "apply_undo",
    "consolidate",
]
