from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1.deliveries.router import router as deliveries_router
from app.api.v1.notifications.router import router as notifications_router
from app.api.v1.tasks.router import router as tasks_router
from app.core.logging import setup_logging
from app.core.middleware import RequestLoggingMiddleware


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title="Class Task Fan-out Service")

    # CORS: allow frontend to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    # Routers. Deliveries first: its paths live under /api/v1/tasks as well.
    app.include_router(deliveries_router)
    app.include_router(tasks_router)
    app.include_router(notifications_router)

    @app.get("/health", tags=["health"])
    async def health() -> dict:
        return {"status": "ok"}

    return app


app = create_app()
