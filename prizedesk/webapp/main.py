import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException
from uvicorn import Config, Server

from config import ALLOWED_ORIGINS, API_PREFIX, IS_DEVELOPMENT
from prizedesk import __version__
from prizedesk.webapp.database import dispose_engines
from prizedesk.webapp.deps import get_db, get_dispatcher
from prizedesk.webapp.exceptions import PrizeDeskError, TransientError
from prizedesk.webapp.routes import *
from prizedesk.webapp.schemas import ApiResponse

logger = logging.getLogger("webapp")


@asynccontextmanager
async def lifespan(_: FastAPI):
    yield
    await get_dispatcher().shutdown()
    await dispose_engines()


app = FastAPI(title="PrizeDesk", version=__version__, lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(awards_router, prefix=API_PREFIX)
app.include_router(redemptions_router, prefix=API_PREFIX)
app.include_router(otp_router, prefix=API_PREFIX)
app.include_router(competitions_router, prefix=API_PREFIX)
app.include_router(prize_pools_router, prefix=API_PREFIX)
app.include_router(prizes_router, prefix=API_PREFIX)


def envelope(status_code: int, message: str, code: str, errors: dict | None = None) -> JSONResponse:
    body = ApiResponse.fail(message, code=code, errors=errors)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


@app.exception_handler(PrizeDeskError)
async def prizedesk_exc_handler(request: Request, exc: PrizeDeskError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return envelope(exc.status_code, exc.message, exc.code, exc.errors)


@app.exception_handler(RequestValidationError)
async def validation_exc_handler(request: Request, exc: RequestValidationError):
    errors: dict[str, str] = {}
    for err in exc.errors():
        field = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")) or "request"
        errors.setdefault(field, err.get("msg", "Invalid value"))
    return envelope(422, "Validation failed", "VALIDATION_ERROR", errors)


@app.exception_handler(StarletteHTTPException)
async def http_exc_handler(request: Request, exc: StarletteHTTPException):
    return envelope(exc.status_code, str(exc.detail), "HTTP_ERROR")


@app.exception_handler(OperationalError)
@app.exception_handler(DBAPIError)
async def db_exc_handler(request: Request, exc: DBAPIError):
    logger.exception("Database error on %s %s", request.method, request.url.path)
    err = TransientError()
    return envelope(err.status_code, err.message, err.code)


@app.exception_handler(Exception)
async def unhandled_exc_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    message = f"{type(exc).__name__}: {exc}" if IS_DEVELOPMENT else PrizeDeskError.default_message
    return envelope(500, message, PrizeDeskError.code)


@app.get("/health")
async def health(db=Depends(get_db)):
    await db.execute(text("SELECT 1"))
    return ApiResponse.ok({"status": "ok", "version": __version__})


async def run_app(host: str = "0.0.0.0", port: int = 8000):
    server = Server(Config(app, host=host, port=port, log_config=None))
    await server.serve()
