import asyncio
import logging
from collections.abc import Mapping
from typing import Any, Protocol

from .context import ControllerContext
from .database import STORE_ERRORS
from .device_controller import DeviceController
from .message_parser import coerce_bool
from .schemas import STATE_ID

logger = logging.getLogger(__name__)


class RecordReader(Protocol):
    async def fetch_latest(self, state_id: int) -> Mapping[str, Any] | None: ...


class ReconciliationReplayer:
    """Replays the last persisted snapshot to the device on a fetch trigger.

    Relay and manual mode are always re-sent. The LED is re-sent only while
    manual mode is on; otherwise the device's automatic control owns it.

    The mirror is left alone: the device answers with fresh telemetry once it
    has applied the commands.
    """

    def __init__(
        self,
        context: ControllerContext,
        store: RecordReader | None,
        controller: DeviceController,
        *,
        relay_field: str = "Relay",
        manual_mode_field: str = "ManualMode",
        led_field: str = "LED2",
    ):
        self._context = context
        self._store = store
        self._controller = controller
        self._relay_field = relay_field
        self._manual_mode_field = manual_mode_field
        self._led_field = led_field

    async def handle_fetch(self, payload: bytes) -> None:
        self.trigger()

    def trigger(self) -> asyncio.Task:
        logger.info("Received fetch event, syncing state")
        return self._context.tasks.submit(self.sync_state_to_device(), name="reconcile-state")

    async def sync_state_to_device(self) -> bool:
        if self._store is None:
            return False

        logger.info("Syncing state from store to device")
        try:
            record = await self._store.fetch_latest(STATE_ID)
        except STORE_ERRORS as exc:
            logger.warning("Error fetching state from store: %s", exc)
            return False

        if record is None:
            logger.info("No state found in store")
            return False
        if not isinstance(record, Mapping):
            logger.warning("Ignoring malformed state record: %r", record)
            return False

        await self._controller.set_relay(coerce_bool(record.get(self._relay_field)))

        manual_mode = coerce_bool(record.get(self._manual_mode_field))
        await self._controller.set_manual_mode(manual_mode)
        if manual_mode:
            await self._controller.set_led(coerce_bool(record.get(self._led_field)))
        return True
