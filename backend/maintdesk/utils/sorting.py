from __future__ import annotations
from maintdesk.errors import InvalidInput


def apply_multi_sort(stmt, sort_expr: str | None, allowed: dict, tie_breaker, default: str | None = None):
    """Order a select by a comma-separated sort expression.

    Tokens are keys of ``allowed`` (key -> column), '-' prefix for descending,
    e.g. ``-priority,created_at``. Falls back to ``default`` when sort_expr is
    empty; a repeated key keeps its first direction. ``tie_breaker`` always goes
    last so paging is stable.
    """
    clauses, seen = [], set()
    for raw in (sort_expr or default or '').split(','):
        token = raw.strip()
        if not token:
            continue
        desc = token.startswith('-')
        key = token.lstrip('-+')
        col = allowed.get(key)
        if col is None:
            raise InvalidInput(f'Invalid sort field {key} (allowed: {", ".join(sorted(allowed))})')
        if key in seen:
            continue
        seen.add(key)
        clauses.append(col.desc() if desc else col.asc())
    clauses.append(tie_breaker.asc())
    return stmt.order_by(*clauses)
