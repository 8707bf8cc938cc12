import os

# Must be set before payout_engine.core.database builds its engine
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest

from payout_engine.core.database import Base, SessionLocal, engine
import payout_engine.models  # noqa: F401


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
