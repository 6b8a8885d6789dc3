import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from roomrelay.config import RelaySettings
from roomrelay.relay import Relay
from roomrelay.routes.health import router as health_router
from roomrelay.routes.rooms import router as rooms_router
from roomrelay.routes.ws import router as ws_router

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def create_app(settings: Optional[RelaySettings] = None) -> FastAPI:
    settings = settings or RelaySettings.from_env()
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)
    relay = Relay(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await relay.start()
        try:
            yield
        finally:
            await relay.shutdown()

    app = FastAPI(
        title="Room Relay",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.relay = relay

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health_router)
    app.include_router(rooms_router)
    app.include_router(ws_router)
    return app


app = create_app()
