import logging
from pathlib import Path
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, PlainTextResponse

from .gateway import CommandGateway
from .schemas import DeviceStateOut, HealthOut

logger = logging.getLogger(__name__)

INDEX_PATH = Path(__file__).parent / "static" / "index.html"


def create_app(gateway: CommandGateway, *, allowed_origins: list[str], lifespan=None) -> FastAPI:
    app = FastAPI(title="Roomsync Controller", version="0.1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/", response_class=HTMLResponse, include_in_schema=False)
    async def index():
        try:
            content = INDEX_PATH.read_text(encoding="utf-8")
        except OSError as exc:
            logger.warning("Could not load UI from %s: %s", INDEX_PATH, exc)
            return PlainTextResponse("Could not load UI", status_code=500)
        return HTMLResponse(content)

    @app.get("/health", response_model=HealthOut, tags=["system"])
    async def health():
        return HealthOut()

    @app.get("/relay/on", response_class=PlainTextResponse, tags=["relay"])
    async def relay_on():
        await gateway.relay(True)
        return "Relay ON command sent\n"

    @app.get("/relay/off", response_class=PlainTextResponse, tags=["relay"])
    async def relay_off():
        await gateway.relay(False)
        return "Relay OFF command sent\n"

    @app.get("/led/on", response_class=PlainTextResponse, tags=["led"])
    async def led_on():
        await gateway.led(True)
        return "LED ON command sent\n"

    @app.get("/led/off", response_class=PlainTextResponse, tags=["led"])
    async def led_off():
        await gateway.led(False)
        return "LED OFF command sent\n"

    @app.get("/manual/on", response_class=PlainTextResponse, tags=["led"])
    async def manual_mode_on():
        await gateway.manual_mode(True)
        return "Manual mode enabled\n"

    @app.get("/manual/off", response_class=PlainTextResponse, tags=["led"])
    async def manual_mode_off():
        await gateway.manual_mode(False)
        return "Manual mode disabled\n"

    @app.get("/state", response_model=DeviceStateOut, tags=["state"])
    async def get_state():
        state = await gateway.current_state()
        return DeviceStateOut(led_state=state.led_state, manual_mode=state.manual_mode)

    @app.get("/metrics", tags=["state"])
    async def get_metrics() -> dict[str, Any]:
        return await gateway.current_metrics()

    return app
