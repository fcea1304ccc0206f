import uuid

from fastapi import FastAPI, Request

from .config import get_settings
from .logging_config import configure_logging
from .database import init_db
from .api.health import router as health_router
from .api.schedule_rules import router as schedule_rules_router
from .api.tours import router as tours_router
from .api.care_plans import router as care_plans_router


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings)

    app = FastAPI(title="Homecare Scheduling Service", version="0.1.0")

    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    @app.on_event("startup")
    def startup() -> None:
        init_db()

    app.include_router(health_router, prefix="/api/v1")
    app.include_router(schedule_rules_router, prefix="/api/v1")
    app.include_router(tours_router, prefix="/api/v1")
    app.include_router(care_plans_router, prefix="/api/v1")

    return app


app = create_app()
