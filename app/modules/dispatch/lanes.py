"""Background delivery lanes.

Queued records wait in one of three lanes. Workers always take from the
priority lane first, then standard, then bulk, so priority traffic is drained
preferentially when capacity is short.
"""

import threading
from collections import deque
from typing import Callable, Deque, Dict, List, Optional, Tuple

from infrastructure.logging import get_module_logger
from modules.dispatch.domain.types import DeliveryClass

logger = get_module_logger()

LANE_ORDER = (
    DeliveryClass.PRIORITY_QUEUE,
    DeliveryClass.STANDARD_QUEUE,
    DeliveryClass.BULK_QUEUE,
)

LaneEntry = Tuple[str, DeliveryClass]


class DeliveryLanes:
    """In-process priority, standard and bulk lanes of record ids."""

    def __init__(self):
        self._lanes: Dict[DeliveryClass, Deque[str]] = {
            lane: deque() for lane in LANE_ORDER
        }
        self._condition = threading.Condition()

    def enqueue(self, record_id: str, delivery_class: DeliveryClass) -> None:
        if delivery_class not in self._lanes:
            raise ValueError(f"{delivery_class.value} is not a queued delivery class")
        with self._condition:
            self._lanes[delivery_class].append(record_id)
            self._condition.notify()

    def dequeue(self, timeout: Optional[float] = None) -> Optional[LaneEntry]:
        """Take the next record id, waiting up to ``timeout`` seconds."""
        with self._condition:
            if not self._condition.wait_for(self._has_entries, timeout=timeout):
                return None
            return self._pop()

    def drain(
        self, handler: Callable[[str], object], max_items: Optional[int] = None
    ) -> int:
        """Run ``handler`` over waiting entries without blocking.

        Returns the number of entries handled.
        """
        handled = 0
        while max_items is None or handled < max_items:
            with self._condition:
                entry = self._pop() if self._has_entries() else None
            if entry is None:
                break
            record_id, lane = entry
            try:
                handler(record_id)
            except Exception as e:  # pylint: disable=broad-except
                logger.error(
                    "lane_entry_failed",
                    record_id=record_id,
                    lane=lane.value,
                    error=str(e),
                    exc_info=True,
                )
            handled += 1
        return handled

    def sizes(self) -> Dict[str, int]:
        with self._condition:
            return {lane.value: len(entries) for lane, entries in self._lanes.items()}

    def __len__(self) -> int:
        with self._condition:
            return sum(len(entries) for entries in self._lanes.values())

    def _has_entries(self) -> bool:
        return any(self._lanes[lane] for lane in LANE_ORDER)

    def _pop(self) -> Optional[LaneEntry]:
        for lane in LANE_ORDER:
            if self._lanes[lane]:
                return self._lanes[lane].popleft(), lane
        return None


class LaneWorkerPool:
    """Threads that pull from the lanes and deliver each record.

    Args:
        lanes: Lanes to drain
        handler: Called with each record id (the orchestrator's ``deliver``)
        workers: Number of threads
        poll_seconds: How long an idle worker waits before checking for stop
    """

    def __init__(
        self,
        lanes: DeliveryLanes,
        handler: Callable[[str], object],
        workers: int = 4,
        poll_seconds: float = 0.5,
    ):
        self.lanes = lanes
        self.handler = handler
        self.workers = workers
        self.poll_seconds = poll_seconds
        self._stop = threading.Event()
        self._threads: List[threading.Thread] = []

    @property
    def running(self) -> bool:
        return any(thread.is_alive() for thread in self._threads)

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._threads = [
            threading.Thread(
                target=self._run,
                name=f"lane-worker-{index}",
                daemon=True,
            )
            for index in range(self.workers)
        ]
        for thread in self._threads:
            thread.start()
        logger.info("lane_workers_started", workers=self.workers)

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        for thread in self._threads:
            thread.join(timeout=timeout)
        self._threads = []
        logger.info("lane_workers_stopped")

    def _run(self) -> None:
        while not self._stop.is_set():
            entry = self.lanes.dequeue(timeout=self.poll_seconds)
            if entry is None:
                continue
            record_id, lane = entry
            try:
                self.handler(record_id)
            except Exception as e:  # pylint: disable=broad-except
                logger.error(
                    "lane_entry_failed",
                    record_id=record_id,
                    lane=lane.value,
                    error=str(e),
                    exc_info=True,
                )
