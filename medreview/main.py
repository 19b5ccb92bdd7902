# medreview/main.py
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from medreview.config import configure_logging, get_settings
from medreview.db import dispose_engine
from medreview.errors import register_error_handlers
from medreview.services import init_db
from medreview.api.routes import router as api_router

settings = get_settings()
configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="MedReview API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=True,
)

register_error_handlers(app)


@app.on_event("startup")
def on_startup() -> None:
    init_db()
    logger.info("MedReview API started")


@app.on_event("shutdown")
def on_shutdown() -> None:
    dispose_engine()


@app.get("/")
def root():
    return {"message": "MedReview API is running"}


app.include_router(api_router, prefix="/api")
