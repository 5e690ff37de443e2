from tests.test_utils_seed import ensure_project
from tests.test_lifecycle_helpers import jwt_headers, create_resource_and_assert


def test_summary_etag_follows_mutations(client, app_instance):
    project = ensure_project('Rpt Etag', company_name='Rpt Co')
    other = ensure_project('Rpt Other', company_name='Rpt Elsewhere')
    with app_instance.app_context():
        manager = jwt_headers(41, role='manager')
    url = f'/reports/summary?project={project.id}'
    other_url = f'/reports/summary?project={other.id}'
    first = client.get(url, headers=manager)
    assert first.status_code == 200
    assert first.get_json()['data']['total_expenses'] == '0.00'
    etag = first.headers['ETag']
    other_etag = client.get(other_url, headers=manager).headers['ETag']
    assert client.get(url, headers={**manager, 'If-None-Match': etag}).status_code == 304

    tx = create_resource_and_assert(client, '/finances/transactions',
                                    {'kind': 'expense', 'amount': '500', 'project_id': project.id, 'date': '2024-03-01'}, manager)
    client.post(f"/finances/transactions/{tx['id']}/approve", headers=manager)

    after = client.get(url, headers={**manager, 'If-None-Match': etag})
    assert after.status_code == 200
    assert after.get_json()['data']['total_expenses'] == '500.00'
    assert after.headers['ETag'] != etag
    assert int(after.headers['X-View-Generation']) > int(first.headers['X-View-Generation'])
    # Unrelated project keeps its representation
    assert client.get(other_url, headers={**manager, 'If-None-Match': other_etag}).status_code == 304


def test_chart_and_category_views(client, app_instance):
    project = ensure_project('Rpt Chart')
    with app_instance.app_context():
        admin = jwt_headers(1, role='admin')
    create_resource_and_assert(client, '/finances/transactions',
                               {'kind': 'payment', 'amount': '800', 'project_id': project.id, 'date': '2023-07-04'}, admin)
    body = client.get(f'/reports/chart-data?project={project.id}&start_date=2023-01-01', headers=admin).get_json()
    assert body['data']['year'] == 2023
    assert body['data']['income'][6] == '800.00'
    body = client.get(f'/reports/category-expenses?project={project.id}', headers=admin).get_json()
    assert body['data']['labels'][-1] == 'other'


def test_project_rollup_and_cache_stats(client, app_instance):
    project = ensure_project('Rpt Rollup', company_name='Rollup Co', budget_cents=100000)
    with app_instance.app_context():
        headers = jwt_headers(42, role='staff')
    body = client.get(f'/reports/project-rollup?project={project.id}', headers=headers).get_json()
    assert body['data'][0]['remaining_budget'] == '1000.00'
    stats = client.get('/reports/cache-stats', headers=headers).get_json()
    assert stats['misses'] >= 1
    assert 'hit_rate' in stats


def test_invalid_report_filters(client, app_instance):
    with app_instance.app_context():
        headers = jwt_headers(43, role='staff')
    assert client.get('/reports/summary?start_date=2024-13-01', headers=headers).status_code == 400
    assert client.get('/reports/summary?start_date=2024-05-01&end_date=2024-01-01', headers=headers).status_code == 400
