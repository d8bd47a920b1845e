import uvicorn
from fastapi import FastAPI

from phone_field_bonus.api.routes.health import router as health_router
from phone_field_bonus.api.routes.internal_phone_bonus import router as internal_phone_bonus_router
from phone_field_bonus.core.config import get_settings
from phone_field_bonus.core.logging import configure_logging


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level, component="api")

    app = FastAPI(
        title="Phone Field Bonus API",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.include_router(health_router)
    app.include_router(internal_phone_bonus_router)
    return app


app = create_app()


def run() -> None:
    settings = get_settings()
    uvicorn.run(
        "phone_field_bonus.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.app_env == "dev",
    )


if __name__ == "__main__":
    run()
