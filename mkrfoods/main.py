# main.py
import logging
import os
from contextlib import asynccontextmanager

from apscheduler.schedulers.background import BackgroundScheduler
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from starlette.exceptions import HTTPException as StarletteHTTPException

from mkrfoods import config
from mkrfoods.database import database
from mkrfoods.dependencies.otp import purge_expired_challenges
from mkrfoods.models import models  # noqa: F401  (registers tables on Base)
from mkrfoods.routers import email_otp, mobile_otp, signup_otp
from mkrfoods.utils.errors import OtpServiceError
from mkrfoods.utils.firebase import init_firebase

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# ---------------- Lifespan context ----------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Creates tables, initializes Firebase for the identity pre-check,
    starts the expired-OTP purge job and logs registered routes.
    """
    database.Base.metadata.create_all(bind=database.engine)
    init_firebase()

    sched = BackgroundScheduler(timezone=os.getenv("TZ", "UTC"))
    sched.add_job(
        purge_expired_challenges,
        "interval",
        minutes=config.OTP_PURGE_INTERVAL_MINUTES,
        id="purge_expired_otps",
        replace_existing=True,
    )
    sched.start()

    logger.info("Environment: %s", config.APP_ENV)
    for route in app.routes:
        if isinstance(route, APIRoute):
            logger.info("%-10s -> %s", ",".join(sorted(route.methods)), route.path)

    yield

    sched.shutdown(wait=False)


# ---------------- FastAPI instance ----------------
app = FastAPI(title="MKR Foods Backend API", lifespan=lifespan)

# ---------------- Include routers ----------------
app.include_router(email_otp.router)
app.include_router(signup_otp.router)
app.include_router(mobile_otp.router)


@app.get("/")
def root():
    return {"message": "MKR Foods Backend API"}


@app.get("/health")
def health():
    return {"status": "Server is running"}


# ---------------- Error handlers ----------------
def _error_body(message: str, detail: str = None, **extra) -> dict:
    body = {"success": False, "message": message, **extra}
    # Diagnostic text only leaves the process in development
    if detail and config.IS_DEVELOPMENT:
        body["error"] = detail
    return body


@app.exception_handler(OtpServiceError)
async def otp_service_exception_handler(request: Request, exc: OtpServiceError):
    if exc.status_code >= 500:
        logger.error("%s on %s: %s (%s)", type(exc).__name__, request.url.path, exc.message, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.message, exc.detail, **exc.extra()),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = {}
    for err in exc.errors():
        loc = err["loc"]
        field = loc[-1] if len(loc) > 1 else "body"
        errors[str(field)] = err["msg"]

    body = _error_body("Invalid request body")
    body["errors"] = errors
    return JSONResponse(status_code=400, content=body)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = "Endpoint not found" if exc.status_code == 404 and exc.detail == "Not Found" else str(exc.detail)
    return JSONResponse(status_code=exc.status_code, content=_error_body(message))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=500, content=_error_body("Server error", str(exc)))
