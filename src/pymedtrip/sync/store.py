"""Remote store for synchronized planner state."""

from __future__ import annotations

from typing import Any, Protocol

from pymedtrip._constants import PLANNER_STATE_CONFLICT, PLANNER_STATE_TABLE
from pymedtrip._transport import Transport
from pymedtrip.models.planner_state import PlannerStateRow


class RemoteStateStore(Protocol):
    """Key/value interface over the remote planner state table.

    ``read`` returns ``None`` when no row exists. Both methods may raise
    :class:`pymedtrip.exceptions.MedTripError`; the synchronizer decides
    what a failure means.
    """

    async def read(self, subject_id: str, scope_id: str, state_key: str) -> Any | None:
        ...

    async def upsert(self, subject_id: str, scope_id: str, state_key: str, payload: Any) -> None:
        ...


class PostgrestStateStore:
    """`RemoteStateStore` backed by the ``trip_planner_state`` table.

    Row-level security restricts every query to the bearer's own rows; the
    ``user_id`` filter is still sent so the composite key is explicit.
    """

    def __init__(self, transport: Transport, *, table: str = PLANNER_STATE_TABLE) -> None:
        self._transport = transport
        self._table = table

    async def read_row(self, subject_id: str, scope_id: str, state_key: str) -> PlannerStateRow | None:
        rows = await self._transport.select(
            self._table,
            filters={"user_id": subject_id, "booking_id": scope_id, "state_key": state_key},
            columns="user_id,booking_id,state_key,state_data,updated_at",
            limit=1,
        )
        if not rows:
            return None
        return PlannerStateRow.model_validate(rows[0])

    async def read(self, subject_id: str, scope_id: str, state_key: str) -> Any | None:
        row = await self.read_row(subject_id, scope_id, state_key)
        return None if row is None else row.state_data

    async def upsert(self, subject_id: str, scope_id: str, state_key: str, payload: Any) -> None:
        row = PlannerStateRow(
            user_id=subject_id,
            booking_id=scope_id,
            state_key=state_key,
            state_data=payload,
        )
        await self._transport.upsert(self._table, row.to_upsert(), on_conflict=PLANNER_STATE_CONFLICT)
