from fastapi import FastAPI
from nightshift.core.db import init_db
from nightshift.core.logging_config import configure_logging, get_logger
from nightshift.api.v1 import admin, files, health, search, ws
from nightshift.core.config import settings
from nightshift.services.pipeline import pipeline
import os

logger = get_logger(__name__)

app = FastAPI(title=settings.PROJECT_NAME)

@app.on_event("startup")
async def on_startup():
    configure_logging()
    logger.info("starting nightshift media processing engine...")
    # a store failure here is fatal: let it propagate and stop the server
    init_db()
    os.makedirs(settings.OUTPUT_DIR, exist_ok=True)
    pipeline.start(web_only=settings.WEB_ONLY)
    logger.info("system initialized successfully")

@app.on_event("shutdown")
async def on_shutdown():
    await pipeline.stop()

@app.get("/")
def read_root():
    return {"message": "Welcome to NightShift API"}

app.include_router(health.router, prefix="/health", tags=["health"])
app.include_router(files.router, prefix="/api", tags=["files"])
app.include_router(search.router, prefix="/api", tags=["search"])
app.include_router(admin.router, prefix="/api/admin", tags=["admin"])
app.include_router(ws.router, prefix="/ws", tags=["websocket"])
