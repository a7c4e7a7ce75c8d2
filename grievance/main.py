import logging
import uuid
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, Depends
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import text
from sqlalchemy.orm import Session
from grievance.api.tickets import router as tickets_router
from grievance.api.status import router as status_router
from grievance.api.history import router as history_router
from grievance.api.stats import router as stats_router
from grievance.api.auth import router as auth_router
from grievance.core.classifier import Classifier, get_classifier
from grievance.core.config import settings
from grievance.core.db import get_db, init_db
from grievance.core.errors import GrievanceError
from grievance.core.log import configure_logging

configure_logging()
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("%s started with %s classifier", settings.PROJECT_NAME, get_classifier().name)
    yield

app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Campus grievance intake, routing and SLA tracking.",
    version="1.0.0",
    lifespan=lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.middleware("http")
async def add_correlation_id(request: Request, call_next):
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response

@app.exception_handler(GrievanceError)
async def grievance_exception_handler(request: Request, exc: GrievanceError):
    request_id = getattr(request.state, "request_id", None)
    if exc.status_code >= 500:
        logger.error("%s on %s [%s]: %s", type(exc).__name__, request.url.path, request_id, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.to_detail(), "request_id": request_id},
    )

@app.exception_handler(SQLAlchemyError)
async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError):
    request_id = getattr(request.state, "request_id", None)
    logger.error("Database failure on %s [%s]: %s", request.url.path, request_id, exc)
    return JSONResponse(
        status_code=503,
        content={"detail": "Service Unavailable: Database connection or operational failure", "request_id": request_id},
    )

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    request_id = getattr(request.state, "request_id", None)
    logger.exception("Unhandled error on %s [%s]", request.url.path, request_id)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal Server Error", "request_id": request_id},
    )

@app.get("/health", tags=["system"])
def health_check(db: Session = Depends(get_db), classifier: Classifier = Depends(get_classifier)):
    try:
        db.execute(text("SELECT 1"))
        db_status = "ok"
    except SQLAlchemyError:
        db_status = "error"
    return {"status": "ok", "database": db_status, "classifier": classifier.name}

app.include_router(tickets_router)
app.include_router(status_router)
app.include_router(history_router)
app.include_router(stats_router)
app.include_router(auth_router)
