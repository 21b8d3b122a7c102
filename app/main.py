from fastapi import FastAPI

from app.config import get_settings
from app.infra.logging_config import LoggingConfig
from app.routers import response_times, webhooks
from app.routers.errors import register_exception_handlers


def create_app(testing: bool = False) -> FastAPI:
    settings = get_settings()
    if not testing:
        LoggingConfig(settings)

    app = FastAPI(
        title=settings.app_name,
        description="Webhook ingestion and agent response-time metrics",
    )
    register_exception_handlers(app)

    app.include_router(webhooks.router)
    app.include_router(response_times.router)

    @app.get("/health", tags=["health"])
    def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host="0.0.0.0", port=get_settings().port)
