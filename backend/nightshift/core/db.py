import os

from sqlalchemy.engine import make_url
from sqlmodel import SQLModel, create_engine

from nightshift.core.config import settings


def _make_engine(url: str):
    connect_args = {}
    parsed = make_url(url)
    if parsed.get_backend_name() == "sqlite":
        # the api thread pool and the event loop share one engine
        connect_args["check_same_thread"] = False
        if parsed.database and parsed.database != ":memory:":
            os.makedirs(os.path.dirname(os.path.abspath(parsed.database)), exist_ok=True)
    return create_engine(url, connect_args=connect_args, pool_pre_ping=True)


engine = _make_engine(settings.DATABASE_URL)


def init_db(bind=None):
    # models must be imported so their tables are registered on the metadata
    from nightshift import models  # noqa: F401

    SQLModel.metadata.create_all(bind or engine)
