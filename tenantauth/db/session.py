from __future__ import annotations

from collections.abc import Generator

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from tenantauth.authz.data_scope import DataScopeFilter
from tenantauth.settings import get_settings


_settings = get_settings()

engine = create_engine(
    _settings.resolved_db_url(),
    connect_args={"check_same_thread": False} if _settings.resolved_db_url().startswith("sqlite") else {},
)

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, class_=Session)


def get_db(request: Request) -> Generator[Session, None, None]:
    """
    Main DB dependency.

    When the request carries a loaded authorization context, its data scope is
    attached to `Session.info["data_scope"]` so that plain `select(Booking)`
    queries come back scoped (see tenantauth/db/filters.py).
    """

    db = SessionLocal()
    try:
        attach_data_scope(db, request)
        yield db
    finally:
        db.close()


def attach_data_scope(db: Session, request: Request) -> None:
    authz = getattr(getattr(request, "state", None), "authz", None)
    if authz is not None:
        db.info["data_scope"] = DataScopeFilter(authz)
