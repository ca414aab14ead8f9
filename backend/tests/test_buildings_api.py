from flask import Flask
from maintdesk import get_db
from maintdesk.models.audit import AuditLog
from tests.seed_utils import seed_staff, headers_for, request_payload, year_prefix


def test_building_config_crud(app_context: Flask):
    client = app_context.test_client()
    users = seed_staff()
    admin = headers_for(users['maintenance_admin'])

    resp = client.post('/building-configs', json={'building_name': 'Tower 1', 'building_code': 't1', 'allow_custom_id': True}, headers=admin)
    assert resp.status_code == 201, resp.get_json()
    created = resp.get_json()
    assert (created['building_code'], created['display_name'], created['current_sequence']) == ('T1', 'Building Tower 1', 0)

    resp = client.post('/building-configs', json={'building_name': 'Tower 1'}, headers=admin)
    assert resp.status_code == 409
    assert resp.get_json()['error']['code'] == 'BUILDING_EXISTS'

    resp = client.put('/building-configs/Tower%201', json={'display_name': 'First Tower'}, headers=admin)
    assert resp.get_json()['display_name'] == 'First Tower'

    resp = client.put('/building-configs/Tower%201', json={'building_code': 'x!'}, headers=admin)
    assert resp.status_code == 400
    assert resp.get_json()['error']['code'] == 'INVALID_BUILDING_CODE'

    body = client.get('/building-configs', headers=headers_for(users['customer'])).get_json()
    assert [c['building_name'] for c in body['data']] == ['Tower 1']

    assert client.delete('/building-configs/Tower%201', headers=admin).status_code == 204
    assert client.get('/building-configs/Tower%201', headers=admin).status_code == 404
    actions = [a.action for a in get_db().query(AuditLog).order_by(AuditLog.id)]
    assert actions == ['BUILDING.CREATE', 'BUILDING.UPDATE', 'BUILDING.DELETE']


def test_building_mutations_need_admin(app_context: Flask):
    client = app_context.test_client()
    users = seed_staff()
    for key in ('customer', 'technician', 'basma_admin'):
        resp = client.post('/building-configs', json={'building_name': 'X1'}, headers=headers_for(users[key]))
        assert resp.status_code == 403
        assert resp.get_json()['error']['code'] == 'ROLE_NOT_PERMITTED'


def test_next_identifier_and_reset(app_context: Flask):
    client = app_context.test_client()
    users = seed_staff()
    admin = headers_for(users['super_admin'])
    for _ in range(2):
        client.post('/requests', json=request_payload(building='Q'), headers=headers_for(users['customer']))
    body = client.get('/building-configs/Q/next-identifier', headers=admin).get_json()
    assert body['next_identifier'] == f'{year_prefix()}-Q-003'
    resp = client.post('/building-configs/Q/reset-sequence', headers=admin)
    assert resp.get_json()['current_sequence'] == 0
    body = client.get('/building-configs/Q/next-identifier', headers=admin).get_json()
    assert body['next_identifier'] == f'{year_prefix()}-Q-001'


def test_building_in_use_cannot_be_deleted(app_context: Flask):
    client = app_context.test_client()
    users = seed_staff()
    client.post('/requests', json=request_payload(building='Busy'), headers=headers_for(users['customer']))
    resp = client.delete('/building-configs/Busy', headers=headers_for(users['super_admin']))
    assert resp.status_code == 409
    assert resp.get_json()['error']['code'] == 'BUILDING_IN_USE'


def test_statistics_and_identifier_history(app_context: Flask):
    client = app_context.test_client()
    users = seed_staff()
    admin = headers_for(users['super_admin'])
    client.post('/requests', json=request_payload(building='S', priority='LOW'), headers=headers_for(users['customer']))
    client.post('/requests', json=request_payload(building='S', custom_identifier='S-SPECIAL'), headers=admin)
    stats = client.get('/building-configs/statistics?building=S', headers=admin).get_json()
    assert stats['total_requests'] == 2
    assert stats['requests_by_priority'] == {'LOW': 1, 'HIGH': 1}
    history = client.get('/building-configs/identifiers?building=S', headers=admin).get_json()
    assert [h['identifier'] for h in history['data']] == ['S-SPECIAL', f'{year_prefix()}-S-001']
    assert client.get('/building-configs/statistics', headers=headers_for(users['customer'])).status_code == 403


def test_building_flags_accept_only_booleans(app_context: Flask):
    client = app_context.test_client()
    users = seed_staff()
    admin = headers_for(users['super_admin'])
    resp = client.post('/building-configs', json={'building_name': 'Annex', 'allow_custom_id': 'false'}, headers=admin)
    assert resp.status_code == 201
    assert resp.get_json()['allow_custom_id'] is False
    client.post('/requests', json=request_payload(building='Annex'), headers=admin)
    resp = client.put('/building-configs/Annex', json={'reset_sequence': 'false'}, headers=admin)
    assert resp.status_code == 200
    assert resp.get_json()['current_sequence'] == 1
    resp = client.put('/building-configs/Annex', json={'is_active': 'sure'}, headers=admin)
    assert resp.status_code == 400
    assert resp.get_json()['error']['code'] == 'INVALID_INPUT'
    resp = client.get('/building-configs?include_inactive=maybe', headers=admin)
    assert resp.status_code == 400


def test_reserved_building_names_rejected(app_context: Flask):
    client = app_context.test_client()
    users = seed_staff()
    admin = headers_for(users['super_admin'])
    for name in ('statistics', 'identifiers'):
        resp = client.post('/building-configs', json={'building_name': name}, headers=admin)
        assert resp.status_code == 400
        assert 'reserved' in resp.get_json()['error']['detail']
    assert client.get('/building-configs/statistics', headers=admin).status_code == 200
