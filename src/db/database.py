"""Generate database sessions"""

from typing import Any

from sqlalchemy import Engine, StaticPool, create_engine
from sqlalchemy.orm import Session, sessionmaker

from src.core.config import Settings
from src.db.schema import Base


def create_db_engine(settings: Settings) -> Engine:
    options: dict[str, Any] = {"echo": settings.db_echo}
    if settings.database_url.startswith("sqlite"):
        # sessions may end on the opponent's timer thread
        options["connect_args"] = {"check_same_thread": False}
        if ":memory:" in settings.database_url:
            # one connection, otherwise every thread sees its own empty database
            options["poolclass"] = StaticPool
    return create_engine(settings.database_url, **options)


def init_db(engine: Engine) -> None:
    """Ensure all tables are created"""
    Base.metadata.create_all(bind=engine)


def create_session_factory(settings: Settings) -> sessionmaker[Session]:
    engine = create_db_engine(settings)
    init_db(engine)
    return sessionmaker(bind=engine)

