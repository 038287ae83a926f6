"""
Predicate builder for filtered, paginated list endpoints.

A ``ListQuery`` collects SQLAlchemy clauses (values always travel as bound
parameters) and applies the same predicate list to two statements: the page
of rows and the total count.  ``PageRequest`` normalises the raw
``page``/``limit`` query parameters so a zero or negative value never
reaches the database as a negative OFFSET or LIMIT.
"""
from __future__ import annotations

import math
from dataclasses import dataclass

from sqlalchemy import ColumnElement, Select, func, or_, select

# Id columns are INTEGER; OFFSET is bound as a BIGINT.
MAX_ROW_ID = 2**31 - 1
MAX_OFFSET = 2**63 - 1


@dataclass(frozen=True)
class PageRequest:
    page: int
    limit: int

    @classmethod
    def normalize(
        cls,
        page: int | None,
        limit: int | None,
        *,
        default_limit: int = 10,
        max_limit: int = 100,
    ) -> PageRequest:
        """Clamp caller input: page/limit below 1 fall back to defaults, limit is capped.

        Pages past the last representable OFFSET are pinned to it; they are empty anyway.
        """
        if page is None or page < 1:
            page = 1
        if limit is None or limit < 1:
            limit = default_limit
        limit = min(limit, max_limit)
        return cls(page=min(page, MAX_OFFSET // limit), limit=limit)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def pagination_envelope(page: PageRequest, total: int) -> dict:
    return {
        "page": page.page,
        "limit": page.limit,
        "total": total,
        "pages": math.ceil(total / page.limit),
    }


def ident_clause(model, ident: str | int) -> ColumnElement[bool]:
    """``id = ? OR slug = ?`` lookup.

    The id half is only added for plain ASCII decimals within the id column's range;
    anything else (``"²"``, a 20-digit title) can only be a slug.
    """
    ident = str(ident)
    row_id = as_row_id(ident)
    if row_id is not None:
        return or_(model.id == row_id, model.slug == ident)
    return model.slug == ident


def as_row_id(text: str) -> int | None:
    """``int(text)`` for ASCII decimals that fit an id column, else None."""
    if not (text.isascii() and text.isdecimal()):
        return None
    value = int(text)
    return value if value <= MAX_ROW_ID else None


class ListQuery:
    """
    Accumulates optional filters for one list endpoint.

    Usage::

        q = (
            ListQuery(Article)
            .search(params.search, Article.title, Article.content)
            .equals(Article.status, params.status)
        )
        rows = await db.execute(q.page_of(select(Article), page))
        total = (await db.execute(q.count())).scalar_one()

    Empty filter values (``None`` or ``""``) are ignored, so callers can pass
    raw query parameters straight through.  Rows come back newest first,
    ties broken by descending id.
    """

    def __init__(self, model, *, order_by: tuple | None = None) -> None:
        self.model = model
        self.clauses: list[ColumnElement[bool]] = []
        self.order_by = order_by or (model.created_at.desc(), model.id.desc())

    def search(self, text: str | None, *columns) -> ListQuery:
        if text:
            self.clauses.append(or_(*(col.contains(text, autoescape=True) for col in columns)))
        return self

    def equals(self, column, value) -> ListQuery:
        if value is not None and value != "":
            self.clauses.append(column == value)
        return self

    def where(self, clause: ColumnElement[bool]) -> ListQuery:
        self.clauses.append(clause)
        return self

    def page_of(self, stmt: Select, page: PageRequest) -> Select:
        return (
            stmt.where(*self.clauses)
            .order_by(*self.order_by)
            .offset(page.offset)
            .limit(page.limit)
        )

    def count(self) -> Select:
        return select(func.count()).select_from(self.model).where(*self.clauses)
