from typing import Any

from .context import ControllerContext
from .device_controller import DeviceController
from .state import DeviceState


class CommandGateway:
    """Operator commands: mirror mutation first, then the outbound publish.

    The mirror keeps the new value even when the publish fails; the transport
    gives no delivery guarantee either way. Each command returns whether the
    publish was accepted.
    """

    def __init__(self, context: ControllerContext, controller: DeviceController):
        self._context = context
        self._controller = controller

    async def relay(self, on: bool) -> bool:
        # Relay commands are fire-and-forget; the mirror is not touched.
        return await self._controller.set_relay(on)

    async def led(self, on: bool) -> bool:
        await self._context.mirror.set_led(on)
        return await self._controller.set_led(on)

    async def manual_mode(self, on: bool) -> bool:
        await self._context.mirror.set_manual_mode(on)
        return await self._controller.set_manual_mode(on)

    async def current_state(self) -> DeviceState:
        return await self._context.mirror.get()

    async def current_metrics(self) -> dict[str, Any]:
        return await self._context.metrics.snapshot()
