import math
from dataclasses import dataclass
from typing import Any

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

MAX_LIMIT = 100


@dataclass(frozen=True)
class PageParams:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def page_params(page: int | None, limit: int | None, default_limit: int) -> PageParams:
    page = max(int(page or 1), 1)
    limit = min(max(int(limit or default_limit), 1), MAX_LIMIT)
    return PageParams(page=page, limit=limit)


def count_rows(db: Session, stmt: Select) -> int:
    return int(db.scalar(select(func.count()).select_from(stmt.order_by(None).subquery())) or 0)


def pagination_meta(total: int, params: PageParams) -> dict[str, Any]:
    return {
        "current_page": params.page,
        "total_pages": math.ceil(total / params.limit) if total else 0,
        "limit": params.limit,
    }


def like_term(search: str) -> str:
    """Case-folded ``%term%`` pattern with ``%``, ``_`` and ``\\`` taken literally."""
    term = search.strip().lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{term}%"
