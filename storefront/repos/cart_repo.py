# storefront/repos/cart_repo.py
import json
from typing import Callable, Dict, List, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.data.database import SessionLocal
from storefront.data.models.cart_record import CartRecordModel
from storefront.domain.errors import PersistenceFailure
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

StoredItems = List[Dict[str, object]]


class CartStore(Protocol):
    """Port trwalego magazynu koszyka: jeden rekord na klucz."""

    def load(self, key: str) -> StoredItems | None: ...

    def save(self, key: str, items: StoredItems) -> None: ...

    def delete(self, key: str) -> None: ...


def dump_items(items: StoredItems) -> str:
    return json.dumps(items, sort_keys=True)


def parse_items(raw: str | bytes | None) -> StoredItems | None:
    if raw is None:
        return None
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        #uszkodzony rekord traktujemy jak pusty koszyk, nie nadpisujemy go tutaj
        logger.warning("Stored cart record is not valid JSON, ignoring it")
        return []
    if not isinstance(data, list):
        return []
    return [row for row in data if isinstance(row, dict)]


class InMemoryCartStore:
    def __init__(self):
        self._records: Dict[str, str] = {}

    def load(self, key: str) -> StoredItems | None:
        return parse_items(self._records.get(key))

    def save(self, key: str, items: StoredItems) -> None:
        self._records[key] = dump_items(items)

    def delete(self, key: str) -> None:
        self._records.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._records


class SqlCartStore:
    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory

    def load(self, key: str) -> StoredItems | None:
        try:
            with self.session_factory() as db:
                record = db.get(CartRecordModel, key)
                return parse_items(record.items) if record else None
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Nie udalo sie odczytac koszyka {key}: {e}") from e

    def save(self, key: str, items: StoredItems) -> None:
        try:
            with self.session_factory() as db:
                record = db.get(CartRecordModel, key)
                if record:
                    record.items = dump_items(items)
                else:
                    db.add(CartRecordModel(key=key, items=dump_items(items)))
                db.commit()
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Nie udalo sie zapisac koszyka {key}: {e}") from e

    def delete(self, key: str) -> None:
        try:
            with self.session_factory() as db:
                record = db.get(CartRecordModel, key)
                if record:
                    db.delete(record)
                    db.commit()
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Nie udalo sie usunac koszyka {key}: {e}") from e
