"""Snapshot returned to anything polling operation progress."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ProgressStatus(BaseModel):
    """Point-in-time view of the current operation.

    The defaults are the "no operation" status returned when nothing is
    running or the operation has been cleared.
    """

    model_config = ConfigDict(frozen=True)

    operation_id: str | None = None
    progress: float = 0
    total: float = 100
    elapsed_time_ms: int = Field(default=0, ge=0)
    estimated_time_remaining_ms: int | None = Field(
        default=None,
        description="None until enough progress exists to extrapolate.",
    )
