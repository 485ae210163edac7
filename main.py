import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

import database
from config import Settings, configure_logging, get_settings
from errors import register_error_handlers
from routers import auth, categories, posts


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    logger = configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        Path(settings.file_upload_path).mkdir(parents=True, exist_ok=True)
        database.init_db()
        logger.info("Blog API started in %s mode", settings.app_env)
        yield
        database.close_db()

    app = FastAPI(title="Blog API", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if settings.is_development:
        @app.middleware("http")
        async def log_requests(request: Request, call_next):
            started = time.perf_counter()
            response = await call_next(request)
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.info(
                "%s %s %s %.1fms",
                request.method, request.url.path, response.status_code, elapsed_ms,
            )
            return response

    register_error_handlers(app)

    @app.get(f"{settings.api_prefix}/health", tags=["system"])
    def health():
        return {
            "success": True,
            "message": "API is running",
            "database": "connected" if database.init_db() is not None else "unavailable",
        }

    app.include_router(auth.router, prefix=settings.api_prefix)
    app.include_router(posts.router, prefix=settings.api_prefix)
    app.include_router(categories.router, prefix=settings.api_prefix)

    app.mount(
        "/uploads",
        StaticFiles(directory=settings.file_upload_path, check_dir=False),
        name="uploads",
    )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=get_settings().port)
