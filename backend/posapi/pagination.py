# Overview: Shared shape for paginated list responses.

from __future__ import annotations


def page_payload(items: list[dict], total: int, page: int, per_page: int) -> dict:
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1
    return {
        "items": items,
        "count": len(items),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def clamp_page(page: int | None, per_page: int | None, *, default_per_page: int, max_per_page: int = 100) -> tuple[int, int]:
    page = max(page or 1, 1)
    per_page = min(max(per_page or default_per_page, 1), max_per_page)
    return page, per_page
