"""Page/per_page query parameter handling."""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Pagination:
    page: int
    per_page: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page

    @property
    def limit(self) -> int:
        return self.per_page


def _to_int(value: str | int | None) -> int:
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0


def get_pagination(page: str | int | None, per_page: str | int | None, default: int, maximum: int) -> Pagination:
    """Resolve the requested page and page size.

    Missing or non-positive values fall back to page 1 and ``default`` rows;
    sizes above ``maximum`` are clamped to it.
    """

    page_num = max(_to_int(page), 1)
    size = _to_int(per_page)
    if size < 1:
        size = default
    elif size > maximum:
        size = maximum
    return Pagination(page=page_num, per_page=size)
