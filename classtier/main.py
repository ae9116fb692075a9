from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

# ===== IMPORT ROUTERS =====
from classtier.api.v1.lecturer import classes as lecturer_classes
from classtier.api.v1.lecturer import tiers as lecturer_tiers
from classtier.api.v1.shares import tiers
from classtier.api.v1.user import learning, payments, subscriptions
from classtier.core.scheduler import start_scheduler, stop_scheduler
from classtier.core.settings import settings
from classtier.db.models.init_db import init_models
from classtier.db.sesson import build_engine, build_session_factory

# --- MIDDLEWARE ---
from classtier.middleware.request_context import RequestContextMiddleware

VALIDATION_FALLBACK_MESSAGE = "Dữ liệu không hợp lệ"


@asynccontextmanager
async def lifespan(app: FastAPI):

    # ================================
    # 1) DATABASE
    # ================================
    app.state.engine = build_engine()
    app.state.session_factory = build_session_factory(app.state.engine)
    if settings.DATABASE_CREATE_ALL:
        await init_models(app.state.engine)
    logger.info("🗄️ Database engine ready")

    # ================================
    # 2) START APSCHEDULER
    # ================================
    if settings.SCHEDULER_ENABLED:
        start_scheduler(app.state.session_factory)

    # App chạy
    try:
        yield
    finally:
        # ================================
        # 3) STOP SCHEDULER
        # ================================
        if settings.SCHEDULER_ENABLED:
            stop_scheduler()

        # ================================
        # 4) CLOSE DATABASE
        # ================================
        await app.state.engine.dispose()
        logger.info("🗄️ Database engine disposed")


# ===== APP CONFIG =====
app = FastAPI(
    title="Classtier API",
    description="Gói học theo cấp và thanh toán mở khóa bài học",
    version="0.1.0",
    lifespan=lifespan,
)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestContextMiddleware)


# ===== ERROR HANDLERS =====
def first_validation_message(errors: list[dict]) -> str:
    """Thông báo của lỗi đầu tiên, bỏ tiền tố "Value error, " của pydantic."""
    if not errors:
        return VALIDATION_FALLBACK_MESSAGE
    first = errors[0]
    error_type = first.get("type", "")
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")

    if error_type == "missing":
        return f"Thiếu trường bắt buộc: {field}" if field else VALIDATION_FALLBACK_MESSAGE
    if error_type == "json_invalid":
        return "Dữ liệu JSON không hợp lệ"

    ctx_error = (first.get("ctx") or {}).get("error")
    if ctx_error is not None:
        return str(ctx_error)
    return first.get("msg") or VALIDATION_FALLBACK_MESSAGE


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": first_validation_message(exc.errors())},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"💥 Lỗi không xác định tại {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "Đã xảy ra lỗi, vui lòng thử lại sau"},
    )


prefix = "/api/v1"

# ===== REGISTER ROUTERS =====

# --- Share ---
app.include_router(tiers.router, prefix=prefix)

# --- USER ROUTES ---
app.include_router(payments.router, prefix=prefix)
app.include_router(subscriptions.router, prefix=prefix)
app.include_router(learning.router, prefix=prefix)

# --- LECTURER ROUTES ---
app.include_router(lecturer_tiers.router, prefix=prefix)
app.include_router(lecturer_classes.router, prefix=prefix)


# ===== ROOT =====
@app.get("/")
async def health():
    return {"message": "ok"}


if __name__ == "__main__":
    uvicorn.run(
        "classtier.main:app", host="0.0.0.0", port=8000, reload=True, log_level="info"
    )
