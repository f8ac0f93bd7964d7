"""Document store used by the media cleanup job.

The cleanup job only talks to storage through DocumentStore: paginated
``find`` with Payload-style where clauses, ``update`` and ``delete``.
SqlAlchemyDocumentStore implements it over the async ORM models.

Where clause format::

    {"and": [
        {"created_at": {"less_than": cutoff}},
        {"deleted_at": {"exists": False}},
    ]}

Deleting a live document moves it to the trash (sets ``deleted_at``);
deleting a document that is already in the trash removes it for good.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List

from sqlalchemy import and_, func, inspect, or_, select, true
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import MANYTOONE, selectinload

from media_gc.exceptions import (
    DocumentNotFoundError,
    InvalidQueryError,
    UnknownCollectionError,
)
from media_gc.models import (
    Author,
    Base,
    File,
    Image,
    Lecture,
    Lesson,
    MediaTag,
    Meditation,
    Page,
)

COLLECTIONS: Dict[str, type[Base]] = {
    "files": File,
    "images": Image,
    "media_tags": MediaTag,
    "authors": Author,
    "lectures": Lecture,
    "meditations": Meditation,
    "lessons": Lesson,
    "pages": Page,
}

TRASH_FIELD = "deleted_at"

OPERATORS: Dict[str, Callable[[Any, Any], Any]] = {
    "equals": lambda column, value: column == value,
    "not_equals": lambda column, value: column != value,
    "less_than": lambda column, value: column < value,
    "less_than_equal": lambda column, value: column <= value,
    "greater_than": lambda column, value: column > value,
    "greater_than_equal": lambda column, value: column >= value,
    "in": lambda column, value: column.in_(list(value)),
    "exists": lambda column, value: column.is_not(None) if value else column.is_(None),
}


@dataclass
class FindResult:
    """One page of documents.

    Attributes:
        docs: Documents on this page, serialized as dicts
        total_docs: Number of documents matching the query
        page: 1-indexed page number
        limit: Page size, 0 when unlimited
        has_next_page: Whether another page follows
    """
    docs: List[Dict[str, Any]] = field(default_factory=list)
    total_docs: int = 0
    page: int = 1
    limit: int = 0
    has_next_page: bool = False


class DocumentStore(ABC):
    """Storage boundary consumed by the cleanup job."""

    @abstractmethod
    async def find(
        self,
        collection: str,
        where: Dict[str, Any] | None = None,
        *,
        page: int = 1,
        limit: int = 10,
        depth: int = 0,
        trash: bool = False,
        sort: str = "id",
    ) -> FindResult:
        """Find documents matching a where clause.

        Args:
            collection: Collection slug
            where: Where clause, None matches everything
            page: 1-indexed page number
            limit: Page size; 0 or less returns every match
            depth: 0 returns relationship ids, 1 or more populates them
            trash: Include trashed documents
            sort: Field to order by, prefixed with "-" for descending

        Returns:
            FindResult for the requested page
        """

    @abstractmethod
    async def find_by_id(
        self,
        collection: str,
        doc_id: int,
        *,
        depth: int = 0,
        trash: bool = False,
    ) -> Dict[str, Any]:
        """Return one document, raising DocumentNotFoundError if absent."""

    @abstractmethod
    async def create(self, collection: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Create a document and return it."""

    @abstractmethod
    async def update(
        self,
        collection: str,
        doc_id: int,
        data: Dict[str, Any],
    ) -> Dict[str, Any]:
        """Apply a partial update and return the updated document."""

    @abstractmethod
    async def delete(self, collection: str, doc_id: int) -> None:
        """Trash a live document, or remove a trashed one permanently."""


class SqlAlchemyDocumentStore(DocumentStore):
    """DocumentStore backed by an async SQLAlchemy session.

    Every mutation is committed on its own; a failed mutation is rolled back
    so the session stays usable for the next one.
    """

    def __init__(
        self,
        session: AsyncSession,
        collections: Dict[str, type[Base]] | None = None,
    ):
        """Initialize the store.

        Args:
            session: Async database session
            collections: Collection slug to model mapping
        """
        self.session = session
        self.collections = collections or COLLECTIONS

    async def find(
        self,
        collection: str,
        where: Dict[str, Any] | None = None,
        *,
        page: int = 1,
        limit: int = 10,
        depth: int = 0,
        trash: bool = False,
        sort: str = "id",
    ) -> FindResult:
        model = self._model(collection)
        clause = self._where(model, where or {}, trash)
        page = max(page, 1)

        total_result = await self.session.execute(
            select(func.count()).select_from(model).where(clause)
        )
        total = total_result.scalar_one()

        query = (
            select(model)
            .where(clause)
            .options(*self._loaders(model))
            .order_by(*self._order_by(model, sort))
            .execution_options(populate_existing=True)
        )
        if limit > 0:
            query = query.offset((page - 1) * limit).limit(limit)

        result = await self.session.execute(query)
        rows = result.scalars().all()

        return FindResult(
            docs=[self._serialize(row, depth) for row in rows],
            total_docs=total,
            page=page,
            limit=max(limit, 0),
            has_next_page=limit > 0 and page * limit < total,
        )

    async def find_by_id(
        self,
        collection: str,
        doc_id: int,
        *,
        depth: int = 0,
        trash: bool = False,
    ) -> Dict[str, Any]:
        model = self._model(collection)
        row = await self._load(model, doc_id, trash=trash)
        if row is None:
            raise DocumentNotFoundError(
                f"Document not found: {collection}/{doc_id}",
                {"collection": collection, "id": doc_id},
            )
        return self._serialize(row, depth)

    async def create(self, collection: str, data: Dict[str, Any]) -> Dict[str, Any]:
        model = self._model(collection)
        row = model()
        try:
            await self._assign(row, data)
            self.session.add(row)
            await self.session.flush()
            doc_id = row.id
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        return await self.find_by_id(collection, doc_id, trash=True)

    async def update(
        self,
        collection: str,
        doc_id: int,
        data: Dict[str, Any],
    ) -> Dict[str, Any]:
        model = self._model(collection)
        row = await self._load(model, doc_id, trash=True)
        if row is None:
            raise DocumentNotFoundError(
                f"Document not found: {collection}/{doc_id}",
                {"collection": collection, "id": doc_id},
            )
        try:
            await self._assign(row, data)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        return await self.find_by_id(collection, doc_id, trash=True)

    async def delete(self, collection: str, doc_id: int) -> None:
        model = self._model(collection)
        row = await self._load(model, doc_id, trash=True)
        if row is None:
            raise DocumentNotFoundError(
                f"Document not found: {collection}/{doc_id}",
                {"collection": collection, "id": doc_id},
            )
        try:
            if hasattr(model, TRASH_FIELD) and getattr(row, TRASH_FIELD) is None:
                setattr(row, TRASH_FIELD, datetime.now(timezone.utc))
            else:
                await self.session.delete(row)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

    def _model(self, collection: str) -> type[Base]:
        try:
            return self.collections[collection]
        except KeyError:
            raise UnknownCollectionError(f"Unknown collection: {collection}") from None

    async def _load(self, model: type[Base], doc_id: int, trash: bool) -> Base | None:
        clause = model.id == doc_id
        if not trash and hasattr(model, TRASH_FIELD):
            clause = and_(clause, getattr(model, TRASH_FIELD).is_(None))
        result = await self.session.execute(
            select(model)
            .where(clause)
            .options(*self._loaders(model))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    def _loaders(model: type[Base]) -> list:
        return [
            selectinload(getattr(model, rel.key))
            for rel in inspect(model).relationships
        ]

    @staticmethod
    def _order_by(model: type[Base], sort: str) -> list:
        descending = sort.startswith("-")
        name = sort.lstrip("-")
        if name not in inspect(model).columns:
            raise InvalidQueryError(f"Cannot sort {model.__tablename__} by {name}")
        column = getattr(model, name)
        ordering = [column.desc() if descending else column.asc()]
        if name != "id":
            ordering.append(model.id.asc())
        return ordering

    def _where(self, model: type[Base], where: Dict[str, Any], trash: bool):
        clause = self._build_clause(model, where)
        if hasattr(model, TRASH_FIELD) and not trash and not _mentions(where, TRASH_FIELD):
            clause = and_(clause, getattr(model, TRASH_FIELD).is_(None))
        return clause

    def _build_clause(self, model: type[Base], where: Dict[str, Any]):
        if not isinstance(where, dict):
            raise InvalidQueryError(f"Where clause must be a mapping, got {type(where).__name__}")

        clauses = []
        for key, condition in where.items():
            if key in ("and", "or"):
                if not isinstance(condition, list):
                    raise InvalidQueryError(f"'{key}' expects a list of where clauses")
                parts = [self._build_clause(model, sub) for sub in condition]
                if parts:
                    clauses.append(and_(*parts) if key == "and" else or_(*parts))
                continue

            if not isinstance(condition, dict):
                raise InvalidQueryError(f"Condition for '{key}' must be a mapping")
            column = self._column(model, key)
            for operator, value in condition.items():
                try:
                    build = OPERATORS[operator]
                except KeyError:
                    raise InvalidQueryError(f"Unsupported operator: {operator}") from None
                clauses.append(build(column, value))

        if not clauses:
            return true()
        return and_(*clauses)

    @staticmethod
    def _column(model: type[Base], name: str):
        mapper = inspect(model)
        if name in mapper.relationships:
            rel = mapper.relationships[name]
            if rel.direction is not MANYTOONE:
                raise InvalidQueryError(
                    f"Cannot filter {model.__tablename__} on to-many relationship {name}"
                )
            (local_column,) = rel.local_columns
            return getattr(model, mapper.get_property_by_column(local_column).key)
        if name in mapper.columns:
            return getattr(model, name)
        raise InvalidQueryError(f"Unknown field for {model.__tablename__}: {name}")

    async def _assign(self, row: Base, data: Dict[str, Any]) -> None:
        model = type(row)
        mapper = inspect(model)
        for key, value in data.items():
            if key in mapper.relationships:
                rel = mapper.relationships[key]
                if rel.direction is MANYTOONE:
                    (local_column,) = rel.local_columns
                    fk_key = mapper.get_property_by_column(local_column).key
                    setattr(row, fk_key, _relation_id(value))
                else:
                    ids = [_relation_id(item) for item in value or []]
                    target = rel.mapper.class_
                    result = await self.session.execute(
                        select(target).where(target.id.in_(ids))
                    )
                    setattr(row, key, list(result.scalars().all()))
            elif key in mapper.columns:
                setattr(row, key, value)
            else:
                raise InvalidQueryError(f"Unknown field for {model.__tablename__}: {key}")

    def _serialize(self, row: Base, depth: int) -> Dict[str, Any]:
        mapper = inspect(type(row))
        foreign_keys: Dict[str, str] = {}
        for rel in mapper.relationships:
            if rel.direction is MANYTOONE:
                (local_column,) = rel.local_columns
                foreign_keys[mapper.get_property_by_column(local_column).key] = rel.key

        doc = {
            attr.key: getattr(row, attr.key)
            for attr in mapper.column_attrs
            if attr.key not in foreign_keys
        }

        for fk_key, rel_key in foreign_keys.items():
            related_id = getattr(row, fk_key)
            if depth > 0 and related_id is not None:
                doc[rel_key] = self._columns(getattr(row, rel_key))
            else:
                doc[rel_key] = related_id

        for rel in mapper.relationships:
            if rel.uselist:
                items = getattr(row, rel.key)
                doc[rel.key] = [
                    self._columns(item) if depth > 0 else item.id for item in items
                ]

        return doc

    @staticmethod
    def _columns(row: Base | None) -> Dict[str, Any] | None:
        if row is None:
            return None
        return {attr.key: getattr(row, attr.key) for attr in inspect(type(row)).column_attrs}


def _mentions(where: Any, name: str) -> bool:
    if isinstance(where, dict):
        return any(key == name or _mentions(value, name) for key, value in where.items())
    if isinstance(where, list):
        return any(_mentions(item, name) for item in where)
    return False


def _relation_id(value: Any) -> Any:
    if isinstance(value, dict):
        return value.get("id")
    if isinstance(value, Base):
        return value.id
    return value
