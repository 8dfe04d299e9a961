from sqlmodel import SQLModel, create_engine
from app.core.config import settings


connect_args = {}
if settings.DATABASE_URL.startswith("sqlite"):
    connect_args = {"check_same_thread": False}

engine = create_engine(settings.DATABASE_URL, connect_args=connect_args)


def create_db_and_tables():
    """Create all tables"""
    import app.models  # noqa: F401

    SQLModel.metadata.create_all(engine)
