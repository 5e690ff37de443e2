from tests.test_utils_seed import ensure_project
from tests.test_lifecycle_helpers import jwt_headers, assert_transition, create_resource_and_assert


def _expense_payload(project_id, amount='500.00'):
    return {'kind': 'expense', 'amount': amount, 'project_id': project_id, 'date': '2024-03-10', 'category': 'travel'}


def test_transaction_lifecycle(client, app_instance):
    project = ensure_project('Fin Lifecycle')
    with app_instance.app_context():
        headers = jwt_headers(11, role='manager')
    tx = create_resource_and_assert(client, '/finances/transactions', _expense_payload(project.id), headers, expected_initial_status='pending')
    assert tx['amount'] == '500.00'
    assert tx['amount_cents'] == 50000
    tx_id = tx['id']
    assert_transition(client, f'/finances/transactions/{tx_id}/approve', headers, 200, expected_body_value='approved')
    assert_transition(client, f'/finances/transactions/{tx_id}/pay', headers, 200, expected_body_value='paid')
    resp = client.get(f'/finances/transactions/{tx_id}', headers=headers)
    assert resp.get_json()['approved_by'] == 11


def test_reject_after_approve_is_conflict(client, app_instance):
    project = ensure_project('Fin Conflict')
    with app_instance.app_context():
        headers = jwt_headers(12, role='manager')
    tx = create_resource_and_assert(client, '/finances/transactions', _expense_payload(project.id), headers)
    assert_transition(client, f"/finances/transactions/{tx['id']}/approve", headers, 200)
    resp = client.post(f"/finances/transactions/{tx['id']}/reject", json={'reason': 'late'}, headers=headers)
    assert resp.status_code == 409
    body = resp.get_json()
    assert body['error']['kind'] == 'InvalidTransitionError'
    assert body['error']['status'] == 409
    assert client.get(f"/finances/transactions/{tx['id']}", headers=headers).get_json()['approval_status'] == 'approved'


def test_delete_finalized_transaction_is_refused(client, app_instance):
    project = ensure_project('Fin Delete')
    with app_instance.app_context():
        admin = jwt_headers(1, role='admin')
    tx = create_resource_and_assert(client, '/finances/transactions', _expense_payload(project.id), admin, expected_initial_status='approved')
    resp = client.delete(f"/finances/transactions/{tx['id']}", headers=admin)
    assert resp.status_code == 409
    assert resp.get_json()['error']['kind'] == 'ImmutableStateError'


def test_update_and_delete_pending(client, app_instance):
    project = ensure_project('Fin Edit')
    with app_instance.app_context():
        staff = jwt_headers(13, role='staff')
        admin = jwt_headers(1, role='admin')
    tx = create_resource_and_assert(client, '/finances/transactions', _expense_payload(project.id), staff, expected_initial_status='pending')
    resp = client.put(f"/finances/transactions/{tx['id']}", json={'amount': '42.10', 'description': 'Taxi'}, headers=staff)
    assert resp.status_code == 200
    assert resp.get_json()['amount'] == '42.10'
    # staff role has no FIN.DELETE
    assert client.delete(f"/finances/transactions/{tx['id']}", headers=staff).status_code == 403
    resp = client.delete(f"/finances/transactions/{tx['id']}", headers=admin)
    assert resp.status_code == 200
    assert client.get(f"/finances/transactions/{tx['id']}", headers=admin).status_code == 404


def test_invalid_input_and_unknown_project(client, app_instance):
    project = ensure_project('Fin Invalid')
    with app_instance.app_context():
        headers = jwt_headers(14, role='manager')
    resp = client.post('/finances/transactions', json=_expense_payload(project.id, amount='-3'), headers=headers)
    assert resp.status_code == 400
    assert resp.get_json()['error']['kind'] == 'InvalidInputError'
    resp = client.post('/finances/transactions', json=_expense_payload(987654), headers=headers)
    assert resp.status_code == 404


def test_list_transactions_filters_and_pagination(client, app_instance):
    project = ensure_project('Fin List')
    with app_instance.app_context():
        headers = jwt_headers(15, role='manager')
    for amount in ('1', '2', '3'):
        create_resource_and_assert(client, '/finances/transactions', _expense_payload(project.id, amount), headers)
    resp = client.get(f'/finances/transactions?project={project.id}&limit=2', headers=headers)
    body = resp.get_json()
    assert resp.status_code == 200
    assert body['pagination']['total'] == 3
    assert body['pagination']['returned'] == 2
    resp = client.get('/finances/transactions?status=archived', headers=headers)
    assert resp.status_code == 400
    resp = client.get('/finances/transactions?offset=-1', headers=headers)
    assert resp.status_code == 400


def test_permissions_and_auth(client, app_instance):
    project = ensure_project('Fin Perms')
    with app_instance.app_context():
        read_only = jwt_headers(16, perms=['FIN.READ'])
    resp = client.post('/finances/transactions', json=_expense_payload(project.id), headers=read_only)
    assert resp.status_code == 403
    assert resp.get_json()['error']['status'] == 403
    assert client.get('/finances/transactions').status_code == 401


def test_expense_categories(client, app_instance):
    with app_instance.app_context():
        headers = jwt_headers(17, role='manager')
    resp = client.post('/finances/expense-categories', json={'category': 'permits'}, headers=headers)
    assert resp.status_code == 201
    assert 'permits' in client.get('/finances/expense-categories', headers=headers).get_json()['data']
    resp = client.post('/finances/expense-categories', json={'category': 'permits'}, headers=headers)
    assert resp.status_code == 400


def test_transitions_discovery(client, app_instance):
    with app_instance.app_context():
        headers = jwt_headers(18, role='staff')
    body = client.get('/finances/transitions', headers=headers).get_json()
    assert body['approval_status']['approved'] == ['paid']
