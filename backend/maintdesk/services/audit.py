from __future__ import annotations
from typing import Any, Dict, Optional
from maintdesk.models.audit import AuditLog


def add_audit(session, action: str, actor_id: Optional[int], entity: Optional[str] = None, entity_id: Optional[str] = None,
              meta: Optional[Dict[str, Any]] = None, actor_role: Optional[str] = None):
    """Persist an audit log entry within the given DB session.

    Parameters:
      action: short action code e.g. BUILDING.CREATE, BUILDING.SEQUENCE.RESET
      actor_id: acting user id (0 for system jobs)
      entity: optional entity name (BuildingConfig, ...)
      entity_id: optional key string
      meta: additional JSON-safe dictionary (will be shallow copied)
    """
    log = AuditLog(
        actor_user_id=actor_id or 0,
        actor_role=getattr(actor_role, 'value', actor_role),
        action=action,
        entity=entity,
        entity_id=str(entity_id) if entity_id is not None else None,
        meta=dict(meta or {}),
    )
    session.add(log)
    # No commit here; caller's transaction boundary controls durability.
    return log
