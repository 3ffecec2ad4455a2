from __future__ import annotations

from flask import request

from ..errors import ValidationError

MAX_PER_PAGE = 100


def _json() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _str_field(data: dict, name: str, *, strip: bool = True) -> str:
    """String value of `name`, "" when absent."""
    value = data.get(name)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError("invalid_field", f"{name} must be a string", field=name)
    return value.strip() if strip else value


def parse_bool(v) -> bool:
    if isinstance(v, bool):
        return v
    if isinstance(v, str):
        vv = v.lower().strip()
        if vv in {"true", "1", "yes"}:
            return True
        if vv in {"false", "0", "no"}:
            return False
    raise ValueError("invalid boolean")


def _int_arg(name: str, default: int) -> int:
    raw = (request.args.get(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError("invalid_field", f"{name} must be int", field=name)


def paginate(query, serialize) -> dict:
    """Offset pagination of a legacy Query; ordering is up to the caller."""
    page = max(1, _int_arg("page", 1))
    per_page = max(1, min(_int_arg("limit", 10), MAX_PER_PAGE))

    total = query.count()
    pages = (total + per_page - 1) // per_page

    items = query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [serialize(i) for i in items],
        "page": page,
        "per_page": per_page,
        "total": total,
        "pages": pages,
        "has_next": page < pages,
        "has_prev": page > 1,
    }
