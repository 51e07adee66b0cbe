from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.sessions import SessionMiddleware

from database import Base, engine
from config import SESSION_BACKEND, SESSION_COOKIE, SESSION_MAX_AGE, SESSION_SECRET
from logger import get_logger
from models.session_db_model import SessionDB  # noqa: F401  registers the table
from routers import document_router
from services.document_analysis_service import DocumentAnalyzer
from services.session_service import SessionStore, build_session_store

logger = get_logger(__name__)

def create_db():
    Base.metadata.create_all(bind=engine)

def create_app(
    session_secret: Optional[str] = SESSION_SECRET,
    session_store: Optional[SessionStore] = None,
    document_analyzer: Optional[DocumentAnalyzer] = None,
    session_backend: str = SESSION_BACKEND,
    session_max_age: int = SESSION_MAX_AGE,
) -> FastAPI:
    if not session_secret:
        logger.critical("FATAL ERROR: SESSION_SECRET is not defined in the environment or .env file.")
        raise SystemExit(1)

    app = FastAPI(
        title="Smart Document Intake Backend",
        description="Backend API that extracts fields from identity document images and accumulates them per session.",
        version="0.1.0",
    )

    app.state.session_store = session_store or build_session_store(session_backend)
    app.state.document_analyzer = document_analyzer or DocumentAnalyzer.from_config()

    # Create tables once when app starts
    @app.on_event("startup")
    def on_startup():
        if session_store is None and session_backend == "sql":
            logger.info("Initializing session database...")
            create_db()
            logger.info("Session database initialized.")
        logger.info("Document intake API ready (session backend: %s)", session_backend)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(
        SessionMiddleware,
        secret_key=session_secret,
        session_cookie=SESSION_COOKIE,
        max_age=session_max_age,
        same_site="lax",
        https_only=False,
    )

    app.include_router(document_router.router)

    @app.get("/")
    async def root():
        return {"message": "Smart Document Intake API is running"}

    return app

app = create_app()
