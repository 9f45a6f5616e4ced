"""Database configuration"""

import os

from sqlalchemy import create_engine
from sqlmodel import Session, SQLModel

from ez_forms.config import config

# Database URL from config
DATABASE_URL = config["database_url"]

if not DATABASE_URL:
    raise ValueError(
        "DATABASE_URL environment variable is not set. "
        "Set DATABASE_URL in the environment or a local .env file."
    )

# Create engine
engine = create_engine(DATABASE_URL, echo=os.getenv("DEBUG", "false").lower() == "true")


def init_db(bind=None) -> None:
    """Create all tables that do not exist yet"""
    # Import for side effect: registers every table on SQLModel.metadata
    import ez_forms.models  # noqa: F401

    SQLModel.metadata.create_all(bind or engine)


def get_db():
    """Get database session"""
    with Session(engine) as session:
        yield session
