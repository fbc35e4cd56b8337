"""
Drama Llama API
Chat and message analysis with tiered access, support chat and admin dashboard.
"""
from dotenv import load_dotenv
load_dotenv()

import logging
import sys
from pathlib import Path

from alembic import command
from alembic.config import Config

# Render captures stdout, so log there
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)],
    force=True  # Override any existing configuration
)

logger = logging.getLogger(__name__)

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from app.api.routes import auth, users, analysis, admin, promo_codes, support_chat
from app.core.config import CORS_ORIGINS, DATABASE_URL
from app.db.session import engine
from app.db.base import Base
from app.utils.disposable_email import ensure_blocklist_loaded
from app import models  # noqa: F401 register all models with Base


def run_migrations() -> None:
    """Run Alembic migrations on startup. Uses alembic.ini and DATABASE_URL.
    Fails startup if migrations fail, so the DB is never left out of sync."""
    project_root = Path(__file__).resolve().parent.parent
    alembic_ini = project_root / "alembic.ini"
    if not alembic_ini.exists():
        logger.warning("alembic.ini not found, skipping Alembic migrations")
        return
    if DATABASE_URL.startswith("sqlite"):
        logger.info("SQLite database, skipping Alembic migrations")
        return
    try:
        alembic_cfg = Config(str(alembic_ini))
        alembic_cfg.set_main_option("script_location", str(project_root / "alembic"))
        alembic_cfg.set_main_option("sqlalchemy.url", DATABASE_URL)
        command.upgrade(alembic_cfg, "head")
        logger.info("Alembic migrations completed successfully")
    except Exception as e:
        logger.exception("Alembic migration failed: %s", e)
        raise


app = FastAPI(title="Drama Llama API")


@app.on_event("startup")
async def startup_event():
    """Create tables, run Alembic migrations and load the disposable email blocklist."""
    logger.info("Creating database tables...")
    Base.metadata.create_all(bind=engine)

    run_migrations()

    try:
        n = ensure_blocklist_loaded()
        logger.info("Disposable email blocklist loaded: %s domains", n)
    except OSError as e:
        logger.warning("Disposable email blocklist load warning: %s", e)


app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_origin_regex=r"https://.*\.(onrender\.com|replit\.app)",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(auth.router, prefix="/api/auth", tags=["Auth"])
app.include_router(users.router, prefix="/api/user", tags=["User"])
app.include_router(analysis.router, prefix="/api/analyze", tags=["Analysis"])
app.include_router(admin.router, prefix="/api/admin", tags=["Admin"])
app.include_router(promo_codes.router, prefix="/api/promo-codes", tags=["Promo Codes"])
app.include_router(support_chat.router, prefix="/api/chat", tags=["Support Chat"])


@app.get("/health")
def health():
    return {"status": "ok"}
