#!/usr/bin/env python3
"""EZ Forms - versioned form building and response collection API"""

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from ez_forms.config import config
from ez_forms.logging_config import get_logger, setup_logging
from ez_forms.models.database import init_db
from ez_forms.routers.ai import router as ai_router
from ez_forms.routers.forms import router as forms_router
from ez_forms.routers.health import health
from ez_forms.routers.responses import router as responses_router

# Configure logging (INFO -> stdout, WARNING/ERROR -> stderr)
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("Database tables ready")
    yield


app = FastAPI(
    title="EZ Forms",
    description="Form building and response collection with versioned form schemas",
    version="1.0.0",
    license_info={
        "name": "MIT",
    },
    lifespan=lifespan,
)

app.include_router(health)
app.include_router(forms_router)
app.include_router(responses_router)
app.include_router(ai_router)


if __name__ == "__main__":
    port = config["port"]
    logger.info(f"Starting EZ Forms on 0.0.0.0:{port}")
    logger.info(f"Health check available at /health")

    try:
        uvicorn.run(
            app, host="0.0.0.0", port=port, log_level=config["log_level"].lower()
        )
    except Exception as e:
        logger.error(f"Failed to start server: {e}")
        raise
