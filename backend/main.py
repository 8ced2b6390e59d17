import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from config import settings
from services.game_hub import GameHub
from services.liveness import LivenessMonitor

logging.basicConfig(level=logging.DEBUG if settings.debug else logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🦎 Chameleon backend starting up...")
    # Room store + connection registry live for the whole process, never on disk
    app.state.hub = GameHub()
    app.state.liveness = LivenessMonitor(app.state.hub)
    app.state.liveness.start()
    yield
    await app.state.liveness.stop()
    logger.info("Backend shutting down (%d rooms dropped).", len(app.state.hub.store))


app = FastAPI(
    title="Chameleon",
    version="0.1.0",
    description="Real-time rooms for the Chameleon social deduction party game",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["Content-Type"],
)


@app.get("/health")
async def health_check():
    return {"status": "ok", "service": "chameleon", "version": "0.1.0"}


from routers.room_router import router as room_router
from routers.ws_router import router as ws_router

app.include_router(room_router, prefix="/api")
app.include_router(ws_router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host=settings.host, port=settings.port, reload=settings.debug)
