import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import settings
from app.database import Base, engine
from app.models import appointment, auth_session, doctor, professional_request, user  # noqa: F401
from app.routers import admin, auth, doctors, payments, users
from app.services.expiry_sweeper import expiry_sweeper
from app.utils.response import create_response, handle_exception, validation_message
from seed import run_seed

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

app = FastAPI(title=settings.PROJECT_NAME)

# Auto create tables
Base.metadata.create_all(bind=engine)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Every failure goes out in the shared envelope with HTTP 200
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return create_response(detail, success=False)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return create_response(validation_message(exc.errors()), success=False)


@app.on_event("startup")
async def startup_event():
    run_seed()
    await expiry_sweeper.start()


@app.on_event("shutdown")
async def shutdown_event():
    await expiry_sweeper.stop()


app.include_router(auth.router)
app.include_router(users.router)
app.include_router(payments.router)
app.include_router(doctors.router)
app.include_router(admin.router)


@app.get("/")
def home():
    try:
        return create_response(
            message="Clinic Booking API running",
            data={"service": "clinic-booking-backend"},
        )
    except Exception as exc:
        return handle_exception(exc)
