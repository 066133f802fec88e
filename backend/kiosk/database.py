import os

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

# Records that used to live in the kiosk's document store (users, locations,
# tickets, messages, waivers) are kept in one relational database.
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./kiosk.db")

connect_args = {"check_same_thread": False, "timeout": 30} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def init_db(bind=None) -> None:
    """Create any missing tables for the kiosk models."""
    from . import models  # noqa: F401  registers the mappers on Base

    Base.metadata.create_all(bind=bind or engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
