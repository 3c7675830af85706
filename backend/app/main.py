import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backend.app.api.routes.accounts import router as accounts_router
from backend.app.api.routes.budgets import router as budgets_router
from backend.app.api.routes.goals import router as goals_router
from backend.app.api.routes.me import router as me_router
from backend.app.api.routes.nudges import router as nudges_router
from backend.app.api.routes.score import router as score_router
from backend.app.api.routes.transactions import router as transactions_router
from backend.app.config import get_settings
from backend.app.errors import EngineError, PersistenceError


settings = get_settings()
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

LOCAL_DEV_ORIGINS = ("http://localhost:5173", "http://127.0.0.1:5173")


def _cors_origins() -> list[str]:
    raw = settings.cors_allow_origins
    if raw is None:
        origins = list(LOCAL_DEV_ORIGINS)
    else:
        origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
    if not origins:
        raise RuntimeError("CORS_ALLOW_ORIGINS must not be empty.")
    if not any(origin in origins for origin in LOCAL_DEV_ORIGINS):
        logger.warning("CORS allowlist does not include local dev origins: %s", origins)
    return origins


app = FastAPI(title="Personal Finance API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(EngineError)
def _engine_error_handler(request: Request, exc: EngineError) -> JSONResponse:
    if isinstance(exc, PersistenceError) or exc.status_code >= 500:
        # Internal details stay in the log.
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
        return JSONResponse(status_code=500, content={"detail": "internal error"})
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


app.include_router(me_router)
app.include_router(transactions_router)
app.include_router(budgets_router)
app.include_router(goals_router)
app.include_router(score_router)
app.include_router(nudges_router)
app.include_router(accounts_router)


@app.get("/health")
def health():
    return {"ok": True}
