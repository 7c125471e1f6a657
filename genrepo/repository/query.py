"""
Query building blocks shared by the sync and async repositories.
"""

from enum import Enum
from typing import Any, Callable, Optional, Type, Union
from sqlalchemy.orm.interfaces import ORMOption
from sqlalchemy.sql.expression import ColumnElement
from sqlmodel import SQLModel
from sqlmodel.sql.expression import SelectOfScalar

from genrepo.exceptions.errors import ArgumentInvalidError


class OrderBy(str, Enum):
    """Ordering direction."""
    ASCENDING = "asc"
    DESCENDING = "desc"


# Query -> query transform used to eager-load related entities
Include = Callable[[SelectOfScalar], SelectOfScalar]

# Mapped attribute (Author.name) or its attribute name ("name")
OrderKey = Union[str, Any]

Predicate = ColumnElement[bool]


def include(*options: ORMOption) -> Include:
    """
    Build an include transform from loader options.

    Nested graphs are expressed by chaining the loaders themselves, e.g.
    include(selectinload(Author.books).selectinload(Book.reviews)).
    """
    def apply(statement: SelectOfScalar) -> SelectOfScalar:
        return statement.options(*options)
    return apply


def chain_includes(*transforms: Optional[Include]) -> Include:
    """Compose include transforms left to right; None entries are skipped."""
    def apply(statement: SelectOfScalar) -> SelectOfScalar:
        for transform in transforms:
            if transform is not None:
                statement = transform(statement)
        return statement
    return apply


def resolve_order_key(model: Type[SQLModel], order_by: OrderKey):
    if isinstance(order_by, str):
        column = getattr(model, order_by, None)
        if column is None or not hasattr(column, "asc"):
            raise ArgumentInvalidError(
                "order_by", f"{model.__name__} has no mapped attribute '{order_by}'"
            )
        return column
    return order_by


def apply_ordering(
    statement: SelectOfScalar,
    model: Type[SQLModel],
    order_by: Optional[OrderKey],
    direction: Optional[OrderBy] = OrderBy.ASCENDING,
) -> SelectOfScalar:
    if order_by is None:
        return statement
    column = resolve_order_key(model, order_by)
    if OrderBy(direction or OrderBy.ASCENDING) is OrderBy.DESCENDING:
        return statement.order_by(column.desc())
    return statement.order_by(column.asc())


def paginate(statement: SelectOfScalar, page_number: int = 0, page_size: int = 0) -> SelectOfScalar:
    """Apply offset/limit for a 1-based page; paging is off unless both values are positive."""
    if page_number > 0 and page_size > 0:
        return statement.offset(page_size * (page_number - 1)).limit(page_size)
    return statement
