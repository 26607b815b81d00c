from pathlib import Path
from sqlmodel import SQLModel, create_engine, Session
from freshsheet.config import settings
from freshsheet.logging import logger

DATA_DIR = Path("data")
DB_URL = settings.DATABASE_URL

# Loops run on worker threads, so SQLite connections must not be pinned to their creator
_connect_args = {"check_same_thread": False} if DB_URL.startswith("sqlite") else {}
engine = create_engine(DB_URL, echo=False, connect_args=_connect_args)

def init_db():
    if DB_URL.startswith("sqlite:///") and not DATA_DIR.exists():
        DATA_DIR.mkdir(exist_ok=True)

    # Import all models here so SQLModel knows about them
    from freshsheet.models import core, catalog, inventory, orders, conversation, agent_log  # noqa: F401

    logger.info(f"Initializing database at {DB_URL}")
    SQLModel.metadata.create_all(engine)

def new_session() -> Session:
    """Open a session on the application engine; callers own closing it."""
    return Session(engine)

def get_session():
    with Session(engine) as session:
        yield session
