from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .config import LOG_JSON, LOG_LEVEL, RATE_LIMIT_PER_MINUTE
from .db import SessionLocal, init_db
from .exceptions import BookingError
from .locks import build_locks
from .logging_config import configure_logging, get_logger
from .middleware import RequestLoggingMiddleware, RateLimitMiddleware
from .notifications import DecisionMailer
from .notifier import ChangeNotifier
from .rabbitmq import publisher
from .redis_client import redis_client
from .routes import router
from .service import BookingService

configure_logging(json_format=LOG_JSON, log_level=LOG_LEVEL)
logger = get_logger("campusconnect")

app = FastAPI(title="CampusConnect Booking Service")

app.add_middleware(RateLimitMiddleware, redis_client=redis_client, max_per_minute=RATE_LIMIT_PER_MINUTE)
app.add_middleware(RequestLoggingMiddleware)
app.include_router(router)


def build_service() -> BookingService:
    return BookingService(
        SessionLocal,
        notifier=ChangeNotifier(),
        locks=build_locks(redis_client),
        publisher=publisher,
        mailer=DecisionMailer(publisher),
    )


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    if exc.status_code >= 500:
        logger.error("booking_error", error=exc.error, detail=exc.detail, path=request.url.path)
    else:
        logger.info("booking_rejected", error=exc.error, detail=exc.detail, path=request.url.path)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.get("/health")
async def health():
    return {"status": "ok", "service": "campusconnect-booking", "events_enabled": publisher.enabled}


@app.on_event("startup")
async def startup():
    await init_db()
    try:
        await publisher.connect()
    except Exception as e:
        logger.warning("rabbitmq_unavailable_at_startup", error=str(e))

    if getattr(app.state, "booking_service", None) is None:
        app.state.booking_service = build_service()


@app.on_event("shutdown")
async def shutdown():
    try:
        await publisher.close()
    except Exception as e:
        logger.warning("rabbitmq_close_failed", error=str(e))
    if redis_client is not None:
        await redis_client.aclose()
