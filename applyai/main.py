import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# ✅ Import All API Routes
from applyai.api.routes import application, ats, cv, health, usage

# ✅ Import Core
from applyai.core.config import CORS_ORIGINS, LOG_LEVEL, RUN_MIGRATIONS
from applyai.core.errors import ApplyAIError, InvalidTransition
from applyai.core.logging_config import sanitize_log_data, setup_logging
from applyai.llm.runner import shutdown_generation_runner

logger = logging.getLogger(__name__)


# ============================================
# ✅ STARTUP / SHUTDOWN
# ============================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(LOG_LEVEL)

    if RUN_MIGRATIONS:
        from applyai.db.migrate import run_migrations
        run_migrations()
    else:
        from applyai.db.init_db import init_db
        init_db()

    logger.info("ApplyAI API started")
    yield

    shutdown_generation_runner()
    logger.info("ApplyAI API stopped")


# ============================================
# ✅ FASTAPI APP INIT
# ============================================

app = FastAPI(title="ApplyAI", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT"],
    allow_headers=["Authorization", "Content-Type"],
)


# ============================================
# ✅ REGISTER ALL ROUTERS
# ============================================

app.include_router(health.router)
app.include_router(usage.router)
app.include_router(ats.router)
app.include_router(cv.router)
app.include_router(application.router)


# ============================================
# ✅ ERROR RESPONSES
# ============================================

def _error_response(status_code: int, detail: dict) -> JSONResponse:
    detail = {**detail, "timestamp": datetime.now(timezone.utc).isoformat()}
    return JSONResponse(status_code=status_code, content={"detail": detail})


@app.exception_handler(ApplyAIError)
async def handle_applyai_error(request: Request, exc: ApplyAIError):
    level = logging.WARNING if exc.status_code < 500 else logging.ERROR
    logger.log(level, f"{request.method} {request.url.path} -> {exc.status_code} {sanitize_log_data(exc.to_dict())}")
    return _error_response(exc.status_code, exc.to_dict())


@app.exception_handler(InvalidTransition)
async def handle_invalid_transition(request: Request, exc: InvalidTransition):
    logger.warning(f"{request.method} {request.url.path} -> 409 {exc}")
    return _error_response(409, {"error": "INVALID_TRANSITION", "message": str(exc)})


# ============================================
# ✅ ROOT ENDPOINT
# ============================================

@app.get("/")
def root():
    return {"status": "ApplyAI API running"}
