"""Trip planner state rows."""

from __future__ import annotations

from typing import Any

from pymedtrip.models._base import MedTripBaseModel


class PlannerStateRow(MedTripBaseModel):
    """Row from the ``trip_planner_state`` table.

    ``(user_id, booking_id, state_key)`` is unique; ``state_data`` is an
    opaque JSON document owned by the UI.
    """

    user_id: str
    booking_id: str
    state_key: str
    state_data: Any = None
    updated_at: str | None = None

    @property
    def composite_key(self) -> tuple[str, str, str]:
        return (self.user_id, self.booking_id, self.state_key)

    def to_upsert(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "booking_id": self.booking_id,
            "state_key": self.state_key,
            "state_data": self.state_data,
        }
