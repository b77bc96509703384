import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi

from ruralcare.api.routes.ai_routes import router as ai_routes
from ruralcare.api.routes.auth_routes import router as auth_routes
from ruralcare.api.routes.storage_routes import router as storage_routes
from ruralcare.core.config import settings
from ruralcare.services import ai_service, auth_service

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("OpenAI API key configured: %s", ai_service.is_configured())
    if settings.SEED_DEMO_USERS:
        auth_service.seed_demo_users()
    yield


app = FastAPI(
    title="RuralCare – Rural Healthcare Assistant",
    description="AI health assistant, voice consultation transcription and session backend",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema
    openapi_schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
    )
    openapi_schema.setdefault("components", {})["securitySchemes"] = {
        "BearerAuth": {
            "type": "http",
            "scheme": "bearer",
        }
    }
    for path in openapi_schema["paths"].values():
        for method in path.values():
            method.setdefault("security", []).append({"BearerAuth": []})
    app.openapi_schema = openapi_schema
    return app.openapi_schema


app.openapi = custom_openapi

app.include_router(auth_routes)
app.include_router(ai_routes)
app.include_router(storage_routes)


@app.get("/health")
async def health():
    return {"status": "ok"}
