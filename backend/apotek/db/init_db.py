"""Create all tables. Run on app startup."""
from sqlalchemy.engine import Engine

from apotek.db.base import Base
from apotek.models import document  # noqa: F401 - register models


def init_db(engine: Engine):
    Base.metadata.create_all(bind=engine)
