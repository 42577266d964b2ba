import argparse
import uvicorn
import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

import sys
from pathlib import Path

# Add project root to path for package imports
base_dir = Path(__file__).parent
sys.path.insert(0, str(base_dir))

from db.database import init_db
from config import load_config, CONFIG_DIR
from routes import health, lessons, srs  # Import routers
from utils.errors import SchedulerError
from utils.logging import configure_logging

logger = structlog.get_logger(__name__)

# First-run init
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: config, logging, DB
    config = load_config()  # Ensures config exists
    configure_logging(config["logging"]["level"], config["logging"]["json"])
    init_db()
    logger.info("startup", config_dir=str(CONFIG_DIR))
    yield

app = FastAPI(
    title="Kotoba SRS",
    description="Spaced-repetition review of Japanese lesson vocabulary",
    lifespan=lifespan,
)

# Include routers
app.include_router(health.router, tags=["health"])
app.include_router(srs.router, prefix="/api/srs", tags=["srs"])
app.include_router(lessons.router, prefix="/api", tags=["lessons"])

@app.exception_handler(SchedulerError)
async def scheduler_error_handler(request: Request, exc: SchedulerError):
    if exc.status_code >= 500:
        logger.warning("request_failed", path=request.url.path, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": exc.message})

@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    problems = [
        f"{'.'.join(str(part) for part in error['loc'] if part != 'body')}: {error['msg']}"
        for error in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"success": False, "error": "; ".join(problems)})

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Kotoba SRS server")
    parser.add_argument("--init", action="store_true", help="Initialize DB and config")
    parser.add_argument("--dev", action="store_true", help="Run in dev mode with reload")
    args = parser.parse_args()
    config = load_config()  # Ensures config is copied if missing
    configure_logging(config["logging"]["level"], config["logging"]["json"])
    if args.init:
        init_db()
        print(f"DB initialized and config copied to {CONFIG_DIR}/")
        exit(0)
    # Run server
    uvicorn.run(
        "main:app",
        host=config["server"]["host"],
        port=config["server"]["port"],
        reload=args.dev,
        log_level=config["logging"]["level"].lower(),
    )
