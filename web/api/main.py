"""FastAPI leaderboard API - standings, admin actions, game-client webhook."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from standings.errors import StorageError
from web.api.admin_routes import router as admin_router
from web.api.cron_routes import router as cron_router
from web.api.deps import close_services, get_storage
from web.api.game_routes import router as game_router
from web.api.routes import router as api_router
from web.api.webhook_routes import router as webhook_router

logger = logging.getLogger("standings.http")


@asynccontextmanager
async def lifespan(app: FastAPI):
    await get_storage().init()
    yield
    await close_services()


app = FastAPI(title="Tournament Leaderboard API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(api_router)
app.include_router(admin_router)
app.include_router(webhook_router)
app.include_router(game_router)
app.include_router(cron_router)


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"error": "Internal Server Error"})


@app.get("/api/health")
async def health():
    return {"status": "ok"}
