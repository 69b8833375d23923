import logging
import time
from collections.abc import Callable, Mapping
from typing import Any, Protocol

from .database import STORE_ERRORS
from .schemas import STATE_ID, STATE_ID_FIELD, TIMESTAMP_FIELD

logger = logging.getLogger(__name__)


class RecordWriter(Protocol):
    async def put_record(self, record: Mapping[str, Any]) -> None: ...


class PersistenceSync:
    """Best-effort writer of metric snapshots to the durable store.

    A lost snapshot is tolerated: the next telemetry message produces another
    one, so failures are logged and never retried.
    """

    def __init__(self, store: RecordWriter | None, *, clock: Callable[[], float] = time.time):
        self._store = store
        self._clock = clock
        self._last_timestamp = 0

    @property
    def enabled(self) -> bool:
        return self._store is not None

    def build_record(self, delta: Mapping[str, Any]) -> dict[str, Any]:
        record = dict(delta)
        record[STATE_ID_FIELD] = STATE_ID
        # Latest-record lookup orders by timestamp, so never step backwards.
        timestamp = max(int(self._clock()), self._last_timestamp)
        self._last_timestamp = timestamp
        record[TIMESTAMP_FIELD] = timestamp
        return record

    async def save(self, delta: Mapping[str, Any]) -> bool:
        if self._store is None:
            return False
        record = self.build_record(delta)
        try:
            await self._store.put_record(record)
        except TypeError as exc:
            logger.warning("Error serializing state record: %s", exc)
            return False
        except STORE_ERRORS as exc:
            logger.warning("Error saving state to store: %s", exc)
            return False
        logger.info("Saved state to store (timestamps=%s)", record[TIMESTAMP_FIELD])
        return True
