import math
from typing import Dict, List, Tuple


def normalize_paging(page: int, page_size: int, max_page_size: int = 100) -> Tuple[int, int]:
    p = page if page and page > 0 else 1
    ps = page_size if page_size and page_size > 0 else 20
    ps = min(ps, max_page_size)
    return p, ps


def paginated(data: List, *, total: int, page: int, limit: int) -> Dict:
    """The ``{data, meta}`` envelope used by every listing endpoint."""
    return {
        "data": data,
        "meta": {
            "total": total,
            "page": page,
            "limit": limit,
            "totalPages": int(math.ceil(total / limit)) if limit else 0,
        },
    }


def parse_sort(sort: str, default_field: str = "createdAt", default_direction: str = "desc") -> Tuple[str, str]:
    """``"total-asc"`` -> ``("total", "asc")``."""
    if not sort:
        return default_field, default_direction
    field, _, direction = sort.partition("-")
    direction = direction.lower() if direction.lower() in ("asc", "desc") else default_direction
    return field or default_field, direction
