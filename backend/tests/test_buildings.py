import pytest
from sqlalchemy import select
from maintdesk.constants.roles import Role
from maintdesk.errors import BuildingExists, BuildingInUse, InvalidBuildingCode, NotFound, BuildingRequired, InvalidInput
from maintdesk.models.audit import AuditLog
from maintdesk.services import buildings, lifecycle
from maintdesk.services.buildings import derive_building_code
from maintdesk.services.identifiers import allocate
from maintdesk.utils.clock import current_year
from tests.seed_utils import seed_staff, ensure_building, year_prefix


def _audit_actions(session):
    return [a.action for a in session.execute(select(AuditLog).order_by(AuditLog.id)).scalars()]


@pytest.mark.parametrize('name,code', [('A', 'A'), ('Building A', 'BUILDINGA'), ('abraj-1', 'ABRAJ1'), ('Very Long Tower Name', 'VERYLONGTO')])
def test_derive_building_code(name, code):
    assert derive_building_code(name) == code


def test_create_config_explicit_and_derived(session):
    c = buildings.create_config('North Wing', 1, building_code='nw', allow_custom_id=True, actor_role=Role.SUPER_ADMIN)
    assert (c.building_code, c.display_name, c.allow_custom_id) == ('NW', 'Building North Wing', True)
    assert (c.current_sequence, c.last_reset_year) == (0, current_year())
    d = buildings.create_config('South', 1, display_name='South Annex')
    assert (d.building_code, d.display_name) == ('SOUTH', 'South Annex')
    assert _audit_actions(session) == ['BUILDING.CREATE', 'BUILDING.CREATE']


def test_create_config_conflicts(session):
    buildings.create_config('A', 1)
    with pytest.raises(BuildingExists):
        buildings.create_config('A', 1)
    with pytest.raises(InvalidBuildingCode):
        buildings.create_config('Other', 1, building_code='A')
    with pytest.raises(InvalidBuildingCode):
        buildings.create_config('Other', 1, building_code='X')  # too short
    with pytest.raises(InvalidBuildingCode):
        buildings.create_config('Other', 1, building_code='BAD-CODE')
    with pytest.raises(BuildingRequired):
        buildings.create_config('  ', 1)


def test_update_config_checks_code_against_other_buildings(session):
    ensure_building('One', code='ONE')
    ensure_building('Two', code='TWO')
    with pytest.raises(InvalidBuildingCode):
        buildings.update_config('Two', 1, building_code='one')
    c = buildings.update_config('Two', 1, building_code='two2', display_name='Second', is_active=False)
    assert (c.building_code, c.display_name, c.is_active) == ('TWO2', 'Second', False)
    # keeping its own code is not a collision
    assert buildings.update_config('Two', 1, building_code='TWO2').building_code == 'TWO2'
    with pytest.raises(InvalidInput):
        buildings.update_config('Two', 1, display_name='x')
    with pytest.raises(NotFound):
        buildings.update_config('Nope', 1, display_name='Whatever')


def test_code_change_applies_to_future_identifiers(session):
    ensure_building('C', code='CC')
    assert allocate('C', session=session) == f'{year_prefix()}-CC-001'
    session.commit()
    buildings.update_config('C', 1, building_code='CX')
    assert allocate('C', session=session) == f'{year_prefix()}-CX-002'


def test_reset_sequence(session):
    ensure_building('R', sequence=41)
    c = buildings.reset_sequence('R', 1, actor_role=Role.MAINTENANCE_ADMIN)
    assert (c.current_sequence, c.last_reset_year) == (0, current_year())
    assert allocate('R', session=session) == f'{year_prefix()}-R-001'
    audit = session.execute(select(AuditLog).where(AuditLog.action == 'BUILDING.SEQUENCE.RESET')).scalar_one()
    assert audit.meta == {'previous_sequence': 41}
    assert audit.actor_role == 'MAINTENANCE_ADMIN'


def test_update_with_reset_flag(session):
    ensure_building('U', sequence=9)
    assert buildings.update_config('U', 1, reset_sequence=True).current_sequence == 0


def test_delete_refused_while_requests_reference_building(session):
    users = seed_staff()
    lifecycle.create_request(users['customer'].id, Role.CUSTOMER, 'Busy', title='T', description='D', location='L')
    with pytest.raises(BuildingInUse):
        buildings.delete_config('Busy', 1)
    ensure_building('Idle')
    buildings.delete_config('Idle', 1)
    with pytest.raises(NotFound):
        buildings.get_config('Idle')
    assert 'BUILDING.DELETE' in _audit_actions(session)


def test_list_configs_hides_inactive_by_default(session):
    ensure_building('Alpha')
    ensure_building('Beta')
    buildings.update_config('Beta', 1, is_active=False)
    assert [c.building_name for c in buildings.list_configs()] == ['Alpha']
    assert [c.building_name for c in buildings.list_configs(include_inactive=True)] == ['Alpha', 'Beta']


def test_statistics(session):
    users = seed_staff()
    for building, priority in (('S1', 'HIGH'), ('S1', 'LOW'), ('S2', 'HIGH')):
        lifecycle.create_request(users['customer'].id, Role.CUSTOMER, building, title='T', description='D', location='L',
                                 priority=priority)
    stats = buildings.statistics('S1')
    assert stats['total_requests'] == 2
    assert stats['requests_by_status'] == {'SUBMITTED': 2}
    assert stats['requests_by_priority'] == {'HIGH': 1, 'LOW': 1}
    assert len(stats['recent_requests']) == 2
    assert buildings.statistics()['total_requests'] == 3


def test_string_flags_are_parsed_not_truthy(session):
    c = buildings.create_config('Flags', 1, allow_custom_id='false')
    assert c.allow_custom_id is False
    ensure_building('Counter', sequence=7)
    c = buildings.update_config('Counter', 1, reset_sequence='false', is_active='no', allow_custom_id='on')
    assert (c.current_sequence, c.is_active, c.allow_custom_id) == (7, False, True)
    with pytest.raises(InvalidInput):
        buildings.update_config('Counter', 1, reset_sequence='please')
    with pytest.raises(InvalidInput):
        buildings.create_config('Flags2', 1, allow_custom_id={'on': True})
    assert buildings.get_config('Counter').current_sequence == 7


@pytest.mark.parametrize('name', ['statistics', 'identifiers', ' Statistics '])
def test_route_names_are_reserved(session, name):
    with pytest.raises(InvalidInput):
        buildings.create_config(name, 1)
    users = seed_staff()
    with pytest.raises(InvalidInput):
        lifecycle.create_request(users['customer'].id, Role.CUSTOMER, name, title='T', description='D', location='L')


def test_non_text_names_rejected(session):
    with pytest.raises(InvalidInput):
        buildings.create_config(42, 1)
    ensure_building('Named')
    with pytest.raises(InvalidInput):
        buildings.update_config('Named', 1, display_name=7)
