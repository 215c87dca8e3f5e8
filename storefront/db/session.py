# storefront/db/session.py
from typing import Iterator

from fastapi import Request
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, Session, create_engine

from storefront.core.config import settings


def build_engine(database_url: str) -> Engine:
    connect_args = {}
    if database_url.startswith("sqlite"):
        # FastAPI runs sync endpoints on a threadpool
        connect_args["check_same_thread"] = False
    return create_engine(database_url, connect_args=connect_args)


engine = build_engine(settings.DATABASE_URL)


def init_db(bind: Engine) -> None:
    # Import models so they register with SQLModel.metadata
    from storefront.db import models  # noqa: F401
    SQLModel.metadata.create_all(bind)


def get_session(request: Request) -> Iterator[Session]:
    """Yield a session bound to the engine the application was created with"""
    bind = getattr(request.app.state, "engine", engine)
    with Session(bind) as session:
        yield session
