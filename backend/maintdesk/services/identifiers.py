"""Ticket identifier allocation.

Auto identifiers look like ``25-A-001``: two-digit year, building code, sequence
zero-padded to at least three digits. The per-building counter is advanced with
one conditional UPDATE (year reset folded into a CASE) so concurrent allocations
for the same building can never read the same value:

  * dialects with UPDATE ... RETURNING get the new value in the same statement;
  * others read it back inside the same transaction, where the row is already
    write-locked by the UPDATE.

allocate() never commits; the caller's transaction owns durability, and the
allocation is rolled back together with the request that needed it.
"""
from __future__ import annotations
import logging
import re
from typing import Optional
from sqlalchemy import select, func, update, case
from sqlalchemy.exc import IntegrityError
from maintdesk.config.pagination import normalize_pagination, pagination_meta
from maintdesk.errors import InvalidIdentifierFormat, DuplicateIdentifier, NotFound
from maintdesk.models.building import BuildingConfig, RequestIdentifier
from maintdesk.services.buildings import get_or_create_config, normalize_building_name, find_config
from maintdesk.utils.clock import utcnow

logger = logging.getLogger(__name__)

CUSTOM_IDENTIFIER_RE = re.compile(r'^[A-Za-z0-9-]{3,20}$')


def format_identifier(year: int, building_code: str, sequence: int) -> str:
    return f'{year % 100:02d}-{building_code}-{sequence:03d}'


def is_valid_custom_identifier(value) -> bool:
    return isinstance(value, str) and CUSTOM_IDENTIFIER_RE.match(value) is not None


def identifier_exists(session, identifier: str) -> bool:
    # Custom identifiers are case-insensitive: 'abc-1' and 'ABC-1' collide
    stmt = select(RequestIdentifier.id).where(func.lower(RequestIdentifier.identifier) == identifier.lower()).limit(1)
    return session.execute(stmt).first() is not None


def allocate(building: Optional[str], custom_identifier: Optional[str] = None, actor_id: Optional[int] = None, *, session=None) -> str:
    """Return the permanent identifier for a new request in building.

    custom_identifier bypasses the building counter entirely. Raises
    InvalidIdentifierFormat / DuplicateIdentifier for a bad custom value and
    BuildingRequired when auto mode has no building.
    """
    from maintdesk import get_db
    session = session or get_db()
    year = utcnow().year
    if custom_identifier is not None and custom_identifier != '':
        return _allocate_custom(session, building, custom_identifier, actor_id, year)
    return _allocate_auto(session, building, actor_id, year)


def _allocate_custom(session, building: Optional[str], identifier: str, actor_id: Optional[int], year: int) -> str:
    if not is_valid_custom_identifier(identifier):
        raise InvalidIdentifierFormat()
    if identifier_exists(session, identifier):
        raise DuplicateIdentifier()
    record = RequestIdentifier(
        identifier=identifier,
        building=(building or '').strip(),
        year=year,
        sequence=RequestIdentifier.CUSTOM_SEQUENCE,
        created_by=actor_id,
    )
    try:
        with session.begin_nested():
            session.add(record)
    except IntegrityError:
        # Claimed concurrently (any letter case) between the check and the insert
        raise DuplicateIdentifier()
    logger.info('identifiers.custom identifier=%s building=%s actor=%s', identifier, building, actor_id)
    return identifier


def _reserve_sequence(session, config: BuildingConfig, year: int) -> int:
    """Atomically advance config's counter for year and return the reserved value."""
    next_value = case(
        (BuildingConfig.last_reset_year == year, BuildingConfig.current_sequence + 1),
        else_=1,
    )
    stmt = (
        update(BuildingConfig)
        .where(BuildingConfig.id == config.id)
        .values(current_sequence=next_value, last_reset_year=year, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if session.get_bind().dialect.update_returning:
        sequence = session.execute(stmt.returning(BuildingConfig.current_sequence)).scalar_one()
    else:
        session.execute(stmt)
        sequence = session.execute(
            select(BuildingConfig.current_sequence).where(BuildingConfig.id == config.id)
        ).scalar_one()
    session.expire(config, ['current_sequence', 'last_reset_year', 'updated_at'])
    return sequence


def _allocate_auto(session, building: Optional[str], actor_id: Optional[int], year: int) -> str:
    building = normalize_building_name(building)
    config = get_or_create_config(session, building, actor_id)
    while True:
        sequence = _reserve_sequence(session, config, year)
        identifier = format_identifier(year, config.building_code, sequence)
        # Sequences are gap-tolerant: skip values already claimed as custom identifiers
        if identifier_exists(session, identifier):
            logger.warning('identifiers.auto.skip identifier=%s reason=taken', identifier)
            continue
        record = RequestIdentifier(identifier=identifier, building=building, year=year, sequence=sequence, created_by=actor_id)
        try:
            with session.begin_nested():
                session.add(record)
        except IntegrityError:
            logger.warning('identifiers.auto.skip identifier=%s reason=conflict', identifier)
            continue
        logger.info('identifiers.auto identifier=%s building=%s sequence=%s actor=%s', identifier, building, sequence, actor_id)
        return identifier


def next_identifier(building: str, *, session=None) -> str:
    """Preview the identifier the next auto allocation would produce; reserves nothing."""
    from maintdesk import get_db
    session = session or get_db()
    config = find_config(session, normalize_building_name(building))
    if not config:
        raise NotFound('Building configuration not found')
    year = utcnow().year
    sequence = config.current_sequence if config.last_reset_year == year else 0
    return format_identifier(year, config.building_code, sequence + 1)


def identifier_history(building: Optional[str] = None, year: Optional[int] = None, limit=None, offset=None, *, session=None) -> dict:
    from maintdesk import get_db
    session = session or get_db()
    limit, offset = normalize_pagination(limit, offset)
    filters = []
    if building:
        filters.append(RequestIdentifier.building == building)
    if year:
        filters.append(RequestIdentifier.year == int(year))
    total = session.execute(select(func.count(RequestIdentifier.id)).where(*filters)).scalar_one()
    rows = session.execute(
        select(RequestIdentifier).where(*filters)
        .order_by(RequestIdentifier.id.desc())
        .offset(offset).limit(limit)
    ).scalars().all()
    return {
        'data': [
            {
                'identifier': r.identifier,
                'building': r.building,
                'year': r.year,
                'sequence': r.sequence,
                'is_custom': r.is_custom,
                'created_by': r.created_by,
                'created_at': r.created_at.isoformat() if r.created_at else None,
            }
            for r in rows
        ],
        'pagination': pagination_meta(total, limit, offset, len(rows)),
    }


__all__ = ['allocate', 'format_identifier', 'is_valid_custom_identifier', 'identifier_exists', 'next_identifier', 'identifier_history']
