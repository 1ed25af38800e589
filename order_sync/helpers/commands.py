"""Operator actions, parsed once at the route boundary into a tagged union."""

from order_sync.helpers.order_sync import ImportOutcome, OrderSynchronizer
from order_sync.models.import_log import ImportOrigin
from pydantic import BaseModel, Field
from typing import Annotated, Dict, List, Literal, Optional, Union


class RunBatchCommand(BaseModel):
    """Run one batch now. An explicit since_id reads from there without moving the stored cursor."""
    action: Literal["run_batch"] = "run_batch"
    since_id: Optional[int] = Field(default=None, ge=0)

    def execute(self, synchronizer: OrderSynchronizer) -> Dict:
        summary = synchronizer.run_batch(ImportOrigin.MANUAL, since_id=self.since_id)
        return {"success": summary.aborted is None, **summary.to_dict()}


class ImportOrderCommand(BaseModel):
    """Import one order. force skips the status and date filters."""
    action: Literal["import_order"] = "import_order"
    order_id: int = Field(gt=0)
    force: bool = False

    def execute(self, synchronizer: OrderSynchronizer) -> Dict:
        result = synchronizer.import_order(self.order_id, ImportOrigin.MANUAL, apply_filters=not self.force)
        return result.to_dict()


class ImportSelectedCommand(BaseModel):
    action: Literal["import_selected"] = "import_selected"
    order_ids: List[int] = Field(min_length=1)

    def execute(self, synchronizer: OrderSynchronizer) -> Dict:
        results = synchronizer.import_selected(self.order_ids, ImportOrigin.MANUAL)
        return {
            "success": all(r.success for r in results),
            "imported": sum(1 for r in results if r.outcome == ImportOutcome.IMPORTED),
            "results": [r.to_dict() for r in results],
        }


ImportCommand = Annotated[
    Union[RunBatchCommand, ImportOrderCommand, ImportSelectedCommand],
    Field(discriminator="action")
]
