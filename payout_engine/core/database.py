from sqlalchemy import create_engine
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from payout_engine.core.config import settings


def normalize_database_url(url: str) -> str:
    # Hosted Postgres hands out postgres:// but SQLAlchemy + psycopg3 needs postgresql+psycopg://
    if url.startswith("postgres://"):
        return "postgresql+psycopg://" + url[len("postgres://"):]
    if url.startswith("postgresql://") and "+psycopg" not in url:
        return "postgresql+psycopg://" + url[len("postgresql://"):]
    return url


def build_engine(url: str, echo: bool = False):
    url = normalize_database_url(url)
    if url.startswith("sqlite"):
        # In-memory SQLite must share one connection across the session factory
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=echo,
        )
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
        echo=echo,
    )


# Create engine
engine = build_engine(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for models
Base = declarative_base()


# Dependency for FastAPI routes
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
