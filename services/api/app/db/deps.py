from __future__ import annotations

from collections.abc import Generator

from fastapi import Depends
from services.api.app.db.database import db_session
from services.api.app.services.catalog_base import Catalog
from services.api.app.services.catalog_sql import SqlCatalog
from services.api.app.services.store_base import QuoteRepository
from services.api.app.services.store_sql import SqlQuoteStore
from sqlalchemy.orm import Session


def get_db() -> Generator[Session, None, None]:
    db = db_session()
    try:
        yield db
    finally:
        db.close()


def get_catalog(db: Session = Depends(get_db)) -> Catalog:
    return SqlCatalog(db)


def get_quote_store(db: Session = Depends(get_db)) -> QuoteRepository:
    return SqlQuoteStore(db)
