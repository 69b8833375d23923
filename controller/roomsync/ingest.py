import logging

from .context import ControllerContext
from .message_parser import parse_metrics_payload
from .persistence import PersistenceSync

logger = logging.getLogger(__name__)


class TelemetryIngest:
    def __init__(self, context: ControllerContext, persistence: PersistenceSync):
        self._context = context
        self._persistence = persistence

    async def handle(self, payload: bytes) -> bool:
        """Merge one metrics message and queue it for persistence.

        Malformed payloads are dropped before anything is touched.
        """

        delta = parse_metrics_payload(payload)
        if delta is None:
            logger.warning("Failed to parse metrics payload=%r", payload)
            return False

        await self._context.metrics.merge(delta)
        logger.info("Received metrics: %s", delta)

        if self._persistence.enabled:
            self._context.tasks.submit(self._persistence.save(delta), name="persist-metrics")
        return True
