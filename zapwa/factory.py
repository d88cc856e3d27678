"""
FastAPI application factory.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.config import get_settings
from .core.database import init_db, close_db
from .core.errors import ZapError
from .core.redis import close_redis
from .api.router import router

logger = logging.getLogger(__name__)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title="Zapwa Agent",
        description="AI sales agent for store chats",
        version="1.0.0",
        docs_url="/docs" if settings.env == "development" else None,
        redoc_url="/redoc" if settings.env == "development" else None,
    )

    # ── CORS ─────────────────────────────────────────────────────
    origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins if origins != ["*"] else ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Errors → {success: false, message} ───────────────────────
    @app.exception_handler(ZapError)
    async def on_zap_error(request: Request, exc: ZapError):
        if exc.status_code >= 500:
            logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc)
            # Internal detail stays in the log
            return _error(exc.status_code, exc.public_message)
        return _error(exc.status_code, exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def on_http_error(request: Request, exc: StarletteHTTPException):
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def on_validation_error(request: Request, exc: RequestValidationError):
        first = exc.errors()[0] if exc.errors() else {}
        field = ".".join(str(p) for p in first.get("loc", ())[1:])
        message = f"{field}: {first.get('msg', 'invalid value')}" if field else "Invalid request"
        return _error(400, message)

    # ── Startup ──────────────────────────────────────────────────
    @app.on_event("startup")
    async def on_startup():
        logging.basicConfig(
            level=getattr(logging, settings.log_level.upper(), logging.INFO),
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        )
        logger.info("Starting Zapwa Agent (env=%s)", settings.env)

        # Create database tables
        await init_db()

        # Initialize tools
        from .tools.registry import init_tools, get_tool_names
        init_tools()

        # Log feature flag state
        from .core.flags import get_flags
        flags = get_flags()
        logger.info(
            "Flags: redis=%s llm=%s order_status=%s",
            flags.use_redis, flags.llm_provider, flags.enable_order_status,
        )
        logger.info("Tools: %s", ", ".join(get_tool_names()))

        logger.info("Zapwa Agent is ready")

    # ── Shutdown ─────────────────────────────────────────────────
    @app.on_event("shutdown")
    async def on_shutdown():
        from .services.llm import close_client
        await close_client()
        await close_db()
        await close_redis()
        logger.info("Zapwa Agent shut down")

    # ── Routes ───────────────────────────────────────────────────
    app.include_router(router)

    return app
