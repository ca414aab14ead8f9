from datetime import datetime, timezone
import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from maintdesk import get_db
from maintdesk.errors import DuplicateIdentifier, InvalidIdentifierFormat, BuildingRequired, NotFound
from maintdesk.models.building import BuildingConfig, RequestIdentifier
from maintdesk.models.user import Category
from maintdesk.services import identifiers
from maintdesk.services.identifiers import allocate, format_identifier, is_valid_custom_identifier, next_identifier
from tests.seed_utils import ensure_building, year_prefix


def _at(year):
    return lambda: datetime(year, 6, 1, 12, 0, tzinfo=timezone.utc)


def test_format_identifier_pads_to_three_digits():
    assert format_identifier(2025, 'A', 1) == '25-A-001'
    assert format_identifier(2025, 'B1', 42) == '25-B1-042'
    assert format_identifier(2100, 'T', 1234) == '00-T-1234'


@pytest.mark.parametrize('value,ok', [
    ('ABC', True), ('abc-123', True), ('A' * 20, True),
    ('AB', False), ('A' * 21, False), ('AB_12', False), ('AB 12', False), ('', False), (None, False),
])
def test_custom_identifier_format(value, ok):
    assert is_valid_custom_identifier(value) is ok


def test_sequential_allocation_increases(session):
    ensure_building('A')
    first = allocate('A', session=session)
    second = allocate('A', session=session)
    session.commit()
    assert first == f'{year_prefix()}-A-001'
    assert second == f'{year_prefix()}-A-002'
    config = session.execute(select(BuildingConfig).where(BuildingConfig.building_name == 'A')).scalar_one()
    assert config.current_sequence == 2


def test_unseen_building_is_created_lazily(session):
    ident = allocate('Tower 7', actor_id=None, session=session)
    session.commit()
    config = session.execute(select(BuildingConfig).where(BuildingConfig.building_name == 'Tower 7')).scalar_one()
    assert config.building_code == 'TOWER7'
    assert config.display_name == 'Building Tower 7'
    assert config.allow_custom_id is False
    assert ident == f'{year_prefix()}-TOWER7-001'


def test_derived_code_collision_gets_suffix(session):
    ensure_building('Existing', code='BLOCKA')
    ident = allocate('Block A', session=session)
    session.commit()
    assert ident == f'{year_prefix()}-BLOCKA2-001'


def test_missing_building_rejected(session):
    with pytest.raises(BuildingRequired):
        allocate('   ', session=session)
    with pytest.raises(BuildingRequired):
        allocate(None, session=session)


def test_custom_identifier_bypasses_counter(session):
    ensure_building('A', sequence=5)
    assert allocate('A', 'VIP-0001', session=session) == 'VIP-0001'
    session.commit()
    row = session.execute(select(RequestIdentifier).where(RequestIdentifier.identifier == 'VIP-0001')).scalar_one()
    assert row.is_custom
    config = session.execute(select(BuildingConfig).where(BuildingConfig.building_name == 'A')).scalar_one()
    assert config.current_sequence == 5


def test_custom_identifier_duplicate_is_case_insensitive(session):
    allocate('A', 'abc-1', session=session)
    session.commit()
    with pytest.raises(DuplicateIdentifier) as exc:
        allocate('A', 'ABC-1', session=session)
    assert exc.value.code == 409


def test_custom_identifier_bad_format(session):
    with pytest.raises(InvalidIdentifierFormat):
        allocate('A', 'no spaces', session=session)


def test_year_rollover_resets_sequence(session, monkeypatch):
    ensure_building('R', year=2024, sequence=7)
    monkeypatch.setattr(identifiers, 'utcnow', _at(2024))
    assert allocate('R', session=session) == '24-R-008'
    monkeypatch.setattr(identifiers, 'utcnow', _at(2025))
    assert allocate('R', session=session) == '25-R-001'
    assert allocate('R', session=session) == '25-R-002'
    session.commit()
    config = session.execute(select(BuildingConfig).where(BuildingConfig.building_name == 'R')).scalar_one()
    assert (config.current_sequence, config.last_reset_year) == (2, 2025)


def test_auto_allocation_skips_identifier_taken_by_custom(session):
    ensure_building('S')
    taken = f'{year_prefix()}-S-001'
    allocate('S', taken, session=session)
    session.commit()
    assert allocate('S', session=session) == f'{year_prefix()}-S-002'


def test_allocation_rolls_back_with_caller(session):
    ensure_building('T')
    allocate('T', session=session)
    session.rollback()
    assert allocate('T', session=session) == f'{year_prefix()}-T-001'


def test_next_identifier_previews_without_reserving(session):
    ensure_building('P', sequence=3)
    preview = next_identifier('P', session=session)
    assert preview == f'{year_prefix()}-P-004'
    assert next_identifier('P', session=session) == preview
    with pytest.raises(NotFound):
        next_identifier('nope', session=session)


def test_identifier_history_lists_newest_first(session):
    ensure_building('H')
    allocate('H', session=session)
    allocate('H', 'CUST-9', session=session)
    session.commit()
    body = identifiers.identifier_history('H', session=session)
    assert [r['identifier'] for r in body['data']] == ['CUST-9', f'{year_prefix()}-H-001']
    assert body['data'][0]['is_custom'] is True
    assert body['pagination']['total'] == 2


def test_custom_identifier_race_keeps_caller_transaction(session, monkeypatch):
    allocate('K', 'abc-1', session=session)
    session.commit()
    session.add(Category(name='Electrical'))
    session.flush()
    # simulate losing the check-then-insert race: the pre-check sees nothing
    monkeypatch.setattr(identifiers, 'identifier_exists', lambda s, value: False)
    with pytest.raises(DuplicateIdentifier):
        allocate('K', 'ABC-1', session=session)
    session.commit()
    assert session.execute(select(Category.name)).scalars().all() == ['Electrical']
    stored = session.execute(select(RequestIdentifier.identifier)).scalars().all()
    assert stored == ['abc-1']


def test_identifier_uniqueness_ignores_case_at_the_database(session):
    session.add(RequestIdentifier(identifier='GATE-7', building='G', year=2025, sequence=0))
    session.commit()
    session.add(RequestIdentifier(identifier='gate-7', building='G', year=2025, sequence=0))
    with pytest.raises(IntegrityError):
        session.flush()
    session.rollback()
