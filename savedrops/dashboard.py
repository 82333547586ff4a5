"""Dashboard reader - the viewer side of the telemetry pipeline.

Subscribes to the newest reading for the signed-in user, derives the
displayed metrics and the leak alert, loads a short flow history for
charting and keeps the per-user billing stub.  Backend failures never
propagate out of the reader: the last-known metrics stay on screen and
``sync_degraded`` is raised instead, until the failing operation next
succeeds.
"""

from __future__ import annotations

import datetime
import logging
import time
from collections.abc import Callable
from typing import Any

from savedrops.backends.base import DataBackend
from savedrops.errors import BackendError
from savedrops.models import Bill, ChartPoint, DashboardMetrics, Document, Reading
from savedrops.session import Session
from savedrops.writer import READINGS_COLLECTION

__all__ = ["ALERT_FLOW_THRESHOLD", "DashboardReader", "format_clock"]

logger = logging.getLogger("savedrops.dashboard")

BILLS_COLLECTION = "bills"

# Flow (L/min) that raises the dashboard alert on its own
ALERT_FLOW_THRESHOLD = 100.0

# Sensor values used when the dashboard creates the very first reading
_FALLBACK_SENSORS: dict[str, Any] = {
    "pressure": 2.5,
    "ph": 7.0,
    "turbidity": 1.2,
    "conductivity": 300,
    "temperature": 25.0,
}


def format_clock(timestamp: float) -> str:
    """Local wall-clock label for chart axes, e.g. ``"14:03:27"``."""
    return time.strftime("%H:%M:%S", time.localtime(timestamp))


def _chart_point(doc: Document) -> ChartPoint | None:
    """Map a stored reading to a chart point, or ``None`` if unusable.

    Timestamps written by other clients may be datetimes instead of epoch
    seconds; those are converted.
    """
    stamp = doc.data.get("timestamp")
    if isinstance(stamp, datetime.datetime):
        stamp = stamp.timestamp()
    if stamp is not None and (isinstance(stamp, bool) or not isinstance(stamp, (int, float))):
        return None
    try:
        flow = float(doc.data.get("flowRate") or 0.0)
    except (TypeError, ValueError):
        return None
    return ChartPoint(time=format_clock(stamp if stamp is not None else time.time()), flow=flow)


class DashboardReader:
    """Read model over the ``readings`` and ``bills`` collections.

    Parameters:
        backend: Connected :class:`DataBackend`.
        session: Signed-in :class:`Session`.
        history_limit: Number of readings loaded for the chart.
        on_change: Optional callable invoked with the new
            :class:`DashboardMetrics` after every live update.
    """

    def __init__(
        self,
        backend: DataBackend,
        session: Session,
        *,
        history_limit: int = 10,
        on_change: Callable[[DashboardMetrics], Any] | None = None,
    ) -> None:
        self._backend = backend
        self._session = session
        self.history_limit = history_limit
        self._on_change = on_change
        self._handle: Any = None
        self._listening = False
        self._latest: Reading | None = None
        self._failing: set[str] = set()
        self.metrics = DashboardMetrics()
        self.history: list[ChartPoint] = []

    @property
    def latest(self) -> Reading | None:
        return self._latest

    @property
    def mounted(self) -> bool:
        return self._listening

    @property
    def sync_degraded(self) -> bool:
        """True while any of subscribe / snapshot / history / bill / toggle
        last failed."""
        return bool(self._failing)

    def _failed(self, operation: str) -> None:
        self._failing.add(operation)

    def _succeeded(self, operation: str) -> None:
        self._failing.discard(operation)

    # ------------------------------------------------------------------
    # Mount / unmount
    # ------------------------------------------------------------------

    async def mount(self) -> None:
        """Start the live subscription, load history and the bill."""
        if self.mounted:
            return
        uid = self._session.require_user().uid
        self._listening = True
        try:
            self._handle = await self._backend.subscribe(
                READINGS_COLLECTION,
                self._on_snapshot,
                where={"userId": uid},
                order_by="timestamp",
                descending=True,
                limit=1,
            )
        except BackendError as exc:
            logger.error("Live readings subscription failed: %s", exc)
            self._listening = False
            self._failed("subscribe")
        else:
            self._succeeded("subscribe")

        await self.refresh_history()
        await self.load_bill()

    async def unmount(self) -> None:
        """Cancel the live subscription."""
        self._listening = False
        if self._handle is None:
            return
        handle, self._handle = self._handle, None
        try:
            await self._backend.unsubscribe(handle)
        except BackendError as exc:
            logger.error("Unsubscribe failed: %s", exc)

    # ------------------------------------------------------------------
    # Live metrics
    # ------------------------------------------------------------------

    def _on_snapshot(self, docs: list[Document]) -> None:
        if not self._listening or not docs:
            return
        try:
            latest = Reading.from_document(docs[0].data)
        except ValueError as exc:
            logger.error("Ignoring malformed reading %s: %s", docs[0].id, exc)
            self._failed("snapshot")
            return

        self._succeeded("snapshot")
        self._latest = latest
        self.metrics = self.metrics.model_copy(
            update={
                "tank_level": latest.tank_level,
                "flow_rate": latest.flow_rate,
                "motor_status": latest.motor_status,
                "leak_alert": latest.leak_detected or latest.flow_rate > ALERT_FLOW_THRESHOLD,
                "last_update": latest.timestamp,
            }
        )
        if self._on_change is not None:
            self._on_change(self.metrics)

    # ------------------------------------------------------------------
    # One-shot loads
    # ------------------------------------------------------------------

    async def refresh_history(self) -> list[ChartPoint]:
        """Load the last ``history_limit`` readings in chronological order."""
        uid = self._session.require_user().uid
        try:
            docs = await self._backend.query(
                READINGS_COLLECTION,
                where={"userId": uid},
                order_by="timestamp",
                descending=True,
                limit=self.history_limit,
            )
        except BackendError as exc:
            logger.error("History fetch failed: %s", exc)
            self._failed("history")
            return self.history

        points = []
        for doc in reversed(docs):
            point = _chart_point(doc)
            if point is None:
                logger.warning("Skipping reading %s with unusable timestamp or flow", doc.id)
                continue
            points.append(point)
        self._succeeded("history")
        self.history = points
        return points

    async def load_bill(self) -> float:
        """Read the user's bill, creating a zero bill the first time."""
        uid = self._session.require_user().uid
        try:
            docs = await self._backend.query(BILLS_COLLECTION, where={"userId": uid}, limit=1)
            if docs:
                amount = float(docs[0].data.get("amount", 0.0))
            else:
                bill = Bill(user_id=uid)
                await self._backend.append(BILLS_COLLECTION, bill.to_document())
                logger.info("Created initial bill for %s", uid)
                amount = bill.amount
        except BackendError as exc:
            logger.error("Bill lookup failed: %s", exc)
            self._failed("bill")
            return self.metrics.bill

        self._succeeded("bill")
        self.metrics = self.metrics.model_copy(update={"bill": amount})
        return amount

    # ------------------------------------------------------------------
    # Controls
    # ------------------------------------------------------------------

    async def toggle_motor(self) -> Reading:
        """Emit a new reading with the pump flipped.

        Prior readings are never modified; the toggle is a fresh append
        based on the cached latest reading, or on the displayed values and
        default sensor values when nothing has been received yet.
        """
        uid = self._session.require_user().uid
        motor = not self.metrics.motor_status
        if self._latest is not None:
            reading = self._latest.model_copy(
                update={"motor_status": motor, "timestamp": Reading.now()}
            )
        else:
            reading = Reading(
                user_id=uid,
                timestamp=Reading.now(),
                tank_level=self.metrics.tank_level,
                flow_rate=self.metrics.flow_rate,
                motor_status=motor,
                **_FALLBACK_SENSORS,
            )

        self.metrics = self.metrics.model_copy(update={"motor_status": motor})
        try:
            await self._backend.append(READINGS_COLLECTION, reading.to_document())
        except BackendError as exc:
            logger.error("Motor toggle not saved: %s", exc)
            self._failed("toggle")
        else:
            self._succeeded("toggle")
        return reading
