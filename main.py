from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn
import time
from datetime import datetime, timezone
import logging

# Configure logging first
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

from app.core.config import settings
from app.core.errors import GameError
from app.db.database import close_database, get_database
from app.api.game import router as game_router

app = FastAPI(
    title=settings.app_name,
    description="Pumpkin Patch farming game backend",
    version=settings.app_version
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(GameError)
async def game_error_handler(request: Request, exc: GameError):
    logger.info(f"[FARM] {request.method} {request.url.path} rejected: {exc.kind} - {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"[ERROR] {request.method} {request.url.path} failed")
    return JSONResponse(status_code=500, content={"message": "Internal server error"})


@app.on_event("startup")
def startup_event():
    """Bring the schema up to date and seed the demo player."""
    if settings.run_migrations_on_startup:
        from migrations.run_migrations import run_all_migrations
        run_all_migrations(settings.database_url)

    if settings.seed_default_player:
        from app.services.game_service import GameService
        GameService(get_database()).ensure_default_player(settings.default_player_id)

    logger.info("=" * 60)
    logger.info(f"{settings.app_name} API startup complete")
    logger.info("=" * 60)


@app.on_event("shutdown")
def shutdown_event():
    close_database()
    logger.info("[OK] Database pool closed")


@app.get("/health")
def health_check(store=Depends(get_database)):
    start_time = time.time()
    backend_status = {"status": "up", "latency_ms": round((time.time() - start_time) * 1000, 2)}

    db_start_time = time.time()
    try:
        store.ping()
        db_status = {"status": "up", "latency_ms": round((time.time() - db_start_time) * 1000, 2)}
    except Exception as e:
        db_status = {"status": "down", "latency_ms": None, "error": str(e)}

    overall_status = "healthy"
    if db_status["status"] == "down":
        overall_status = "degraded"
    elif db_status["latency_ms"] > 500:
        overall_status = "degraded"

    return {
        "status": overall_status,
        "version": settings.app_version,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {
            "backend": backend_status,
            "database": db_status
        }
    }


# Include API routes
app.include_router(game_router)


@app.get("/")
def root():
    return {"message": f"{settings.app_name} API is running"}


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
