"""Database session management for the local cart store"""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from pharmacy_core.config import settings
from pharmacy_core.infrastructure.database.models import Base


def create_session_factory(database_url: str | None = None) -> sessionmaker:
    """
    Build a session factory and make sure the cart table exists.

    SQLite is the default; the connection is shared across the asyncio
    loop's single thread, so same-thread checking is disabled.
    """
    url = database_url or settings.cart_database_url
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    engine = create_engine(url, pool_pre_ping=True, connect_args=connect_args)
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
