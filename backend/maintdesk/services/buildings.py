"""Building registry: building metadata and the per-building/year sequence row.

Allocation of sequences lives in services.identifiers; this module only creates,
edits, resets and deletes BuildingConfig rows, and resolves (or lazily creates)
the row an allocation needs.
"""
from __future__ import annotations
import logging
import re
from typing import Optional
from sqlalchemy import select, func, update
from sqlalchemy.exc import IntegrityError
from maintdesk.decorators.transactional import transactional
from maintdesk.errors import NotFound, InvalidInput, BuildingExists, BuildingInUse, InvalidBuildingCode, BuildingRequired
from maintdesk.models.building import BuildingConfig
from maintdesk.models.request import MaintenanceRequest
from maintdesk.services.audit import add_audit
from maintdesk.utils.clock import current_year, utcnow
from maintdesk.utils.validation import parse_bool, require_text, optional_text

logger = logging.getLogger(__name__)

BUILDING_CODE_RE = re.compile(r'^[A-Za-z0-9]{2,10}$')
MAX_CODE_LENGTH = 10
# Static sub-paths of /building-configs; a building with one of these names could never be addressed
RESERVED_BUILDING_NAMES = frozenset({'statistics', 'identifiers'})


def derive_building_code(building_name: str) -> str:
    """'A' -> 'A', 'Building A' -> 'BUILDINGA', 'ABRAJ-1' -> 'ABRAJ1' (max 10 chars)."""
    return re.sub(r'[^A-Z0-9]', '', (building_name or '').upper())[:MAX_CODE_LENGTH]


def normalize_building_name(building_name: Optional[str]) -> str:
    if building_name is not None and not isinstance(building_name, str):
        raise InvalidInput('building must be a string')
    name = (building_name or '').strip()
    if not name:
        raise BuildingRequired()
    if name.lower() in RESERVED_BUILDING_NAMES:
        raise InvalidInput(f"Building name '{name}' is reserved")
    return name


def validate_building_code(code: str) -> str:
    if not isinstance(code, str) or not BUILDING_CODE_RE.match(code):
        raise InvalidBuildingCode()
    return code.upper()


def _code_taken(session, code: str, exclude_name: Optional[str] = None) -> bool:
    stmt = select(BuildingConfig.id).where(BuildingConfig.building_code == code)
    if exclude_name is not None:
        stmt = stmt.where(BuildingConfig.building_name != exclude_name)
    return session.execute(stmt.limit(1)).first() is not None


def unique_derived_code(session, building_name: str) -> str:
    base = derive_building_code(building_name)
    if not base:
        raise InvalidBuildingCode(f"Cannot derive a building code from '{building_name}'; it has no letters or digits")
    code, suffix = base, 2
    while _code_taken(session, code):
        tail = str(suffix)
        code = base[:MAX_CODE_LENGTH - len(tail)] + tail
        suffix += 1
    return code


def find_config(session, building_name: str) -> Optional[BuildingConfig]:
    return session.execute(select(BuildingConfig).where(BuildingConfig.building_name == building_name)).scalar_one_or_none()


def _get_or_404(session, building_name: str) -> BuildingConfig:
    config = find_config(session, building_name)
    if not config:
        raise NotFound('Building configuration not found')
    return config


def get_or_create_config(session, building_name: str, actor_id: Optional[int] = None) -> BuildingConfig:
    """Resolve the config for building_name, creating it on first use.

    Two first requests for the same unseen building race on the unique name; the
    loser's insert is rolled back to its savepoint and the winner's row is used.
    """
    building_name = normalize_building_name(building_name)
    config = find_config(session, building_name)
    if config:
        return config
    config = BuildingConfig(
        building_name=building_name,
        building_code=unique_derived_code(session, building_name),
        display_name=f'Building {building_name}',
        allow_custom_id=False,
        current_sequence=0,
        last_reset_year=current_year(),
        created_by=actor_id,
    )
    try:
        with session.begin_nested():
            session.add(config)
    except IntegrityError:
        logger.info('buildings.lazy_create.lost_race building=%s', building_name)
        config = find_config(session, building_name)
        if config is None:
            raise
        return config
    logger.info('buildings.lazy_create building=%s code=%s', building_name, config.building_code)
    return config


def list_configs(include_inactive: bool = False, *, session=None):
    from maintdesk import get_db
    session = session or get_db()
    stmt = select(BuildingConfig)
    if not include_inactive:
        stmt = stmt.where(BuildingConfig.is_active.is_(True))
    return session.execute(stmt.order_by(BuildingConfig.building_name.asc())).scalars().all()


def get_config(building_name: str, *, session=None) -> BuildingConfig:
    from maintdesk import get_db
    session = session or get_db()
    return _get_or_404(session, building_name)


@transactional
def create_config(building_name: str, actor_id: int, building_code: Optional[str] = None, display_name: Optional[str] = None,
                  allow_custom_id: bool = False, *, session=None, actor_role=None) -> BuildingConfig:
    building_name = normalize_building_name(building_name)
    if find_config(session, building_name):
        raise BuildingExists()
    if building_code:
        code = validate_building_code(building_code)
        if _code_taken(session, code):
            raise InvalidBuildingCode(f'Building code {code} already exists')
    else:
        code = unique_derived_code(session, building_name)
    config = BuildingConfig(
        building_name=building_name,
        building_code=code,
        display_name=optional_text(display_name, 'display_name', 100) or f'Building {building_name}',
        allow_custom_id=parse_bool(allow_custom_id, 'allow_custom_id', False),
        current_sequence=0,
        last_reset_year=current_year(),
        created_by=actor_id,
    )
    session.add(config)
    session.flush()
    add_audit(session, 'BUILDING.CREATE', actor_id, 'BuildingConfig', building_name,
              {'building_code': code, 'allow_custom_id': config.allow_custom_id}, actor_role=actor_role)
    session.commit()
    logger.info('buildings.create building=%s code=%s actor=%s', building_name, code, actor_id)
    return config


@transactional
def update_config(building_name: str, actor_id: int, building_code: Optional[str] = None, display_name: Optional[str] = None,
                  allow_custom_id: Optional[bool] = None, is_active: Optional[bool] = None, reset_sequence: bool = False,
                  *, session=None, actor_role=None) -> BuildingConfig:
    config = _get_or_404(session, building_name)
    allow_custom_id = parse_bool(allow_custom_id, 'allow_custom_id')
    is_active = parse_bool(is_active, 'is_active')
    reset_sequence = parse_bool(reset_sequence, 'reset_sequence', False)
    changes = {}
    if building_code is not None:
        code = validate_building_code(building_code)
        # Collision check against every other building before anything is written
        if _code_taken(session, code, exclude_name=config.building_name):
            raise InvalidBuildingCode(f'Building code {code} already exists')
        if code != config.building_code:
            changes['building_code'] = {'before': config.building_code, 'after': code}
            config.building_code = code
    if display_name is not None:
        name = require_text(display_name, 'display_name', 100)
        if len(name) < 2:
            raise InvalidInput('display_name must be at least 2 characters')
        config.display_name = name
    if allow_custom_id is not None:
        config.allow_custom_id = allow_custom_id
    if is_active is not None:
        config.is_active = is_active
    if reset_sequence:
        _reset_counter(session, config)
        changes['current_sequence'] = {'after': 0}
    session.flush()
    add_audit(session, 'BUILDING.UPDATE', actor_id, 'BuildingConfig', config.building_name, {'changes': changes}, actor_role=actor_role)
    session.commit()
    logger.info('buildings.update building=%s changes=%s actor=%s', config.building_name, sorted(changes), actor_id)
    return config


def _reset_counter(session, config: BuildingConfig):
    year = current_year()
    session.execute(
        update(BuildingConfig)
        .where(BuildingConfig.id == config.id)
        .values(current_sequence=0, last_reset_year=year, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    session.expire(config, ['current_sequence', 'last_reset_year', 'updated_at'])


@transactional
def reset_sequence(building_name: str, actor_id: int, *, session=None, actor_role=None) -> BuildingConfig:
    """Force the counter back to 0 for the current year, independently of allocation."""
    config = _get_or_404(session, building_name)
    previous = config.current_sequence
    _reset_counter(session, config)
    add_audit(session, 'BUILDING.SEQUENCE.RESET', actor_id, 'BuildingConfig', config.building_name,
              {'previous_sequence': previous}, actor_role=actor_role)
    session.commit()
    logger.info('buildings.sequence.reset building=%s previous=%s actor=%s', config.building_name, previous, actor_id)
    return config


@transactional
def delete_config(building_name: str, actor_id: int, *, session=None, actor_role=None):
    config = _get_or_404(session, building_name)
    in_use = session.execute(
        select(func.count(MaintenanceRequest.id)).where(MaintenanceRequest.building == config.building_name)
    ).scalar_one()
    if in_use:
        raise BuildingInUse()
    session.delete(config)
    add_audit(session, 'BUILDING.DELETE', actor_id, 'BuildingConfig', building_name, {'building_code': config.building_code},
              actor_role=actor_role)
    session.commit()
    logger.info('buildings.delete building=%s actor=%s', building_name, actor_id)


def statistics(building_name: Optional[str] = None, *, session=None) -> dict:
    from maintdesk import get_db
    session = session or get_db()
    filters = []
    if building_name:
        filters.append(MaintenanceRequest.building == building_name)
    total = session.execute(select(func.count(MaintenanceRequest.id)).where(*filters)).scalar_one()
    by_status = session.execute(
        select(MaintenanceRequest.status, func.count(MaintenanceRequest.id)).where(*filters).group_by(MaintenanceRequest.status)
    ).all()
    by_priority = session.execute(
        select(MaintenanceRequest.priority, func.count(MaintenanceRequest.id)).where(*filters).group_by(MaintenanceRequest.priority)
    ).all()
    recent = session.execute(
        select(MaintenanceRequest).where(*filters).order_by(MaintenanceRequest.created_at.desc()).limit(5)
    ).scalars().all()
    return {
        'total_requests': total,
        'requests_by_status': {status.value: count for status, count in by_status},
        'requests_by_priority': {priority.value: count for priority, count in by_priority},
        'recent_requests': [
            {
                'id': r.id,
                'custom_identifier': r.custom_identifier,
                'title': r.title,
                'status': r.status.value,
                'priority': r.priority.value,
                'created_at': r.created_at.isoformat() if r.created_at else None,
            }
            for r in recent
        ],
    }
