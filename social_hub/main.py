import logging
import os
import uvicorn
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from social_hub.api.v1.api import api_router
from social_hub.core.config import settings
from social_hub.core.exceptions import SocialHubError
from social_hub.services.registry import build_services

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan_context_manager(app: FastAPI):
    # Startup
    logger.info("Main app lifespan startup: building services and starting the notification subscriber...")
    services = build_services()
    app.state.services = services
    services.start()
    yield
    # Shutdown
    logger.info("Main app lifespan shutdown: stopping the notification subscriber...")
    services.stop()


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Friendships between learners and real-time notifications about them.",
    version="0.1.0",
    lifespan=lifespan_context_manager,
)

if settings.BACKEND_CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.BACKEND_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.exception_handler(SocialHubError)
async def social_hub_error_handler(request: Request, exc: SocialHubError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


app.include_router(api_router, prefix=settings.API_V1_STR)


@app.get("/health")
async def health_check():
    return {"status": "ok"}


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8080))
    uvicorn.run("social_hub.main:app", host="0.0.0.0", port=port, log_level="info")
