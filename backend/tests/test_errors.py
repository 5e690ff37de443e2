def test_unknown_path_returns_error_json(client):
    resp = client.get('/non-existent-path')
    # Flask default 404 should be wrapped by error handler
    assert resp.status_code == 404
    body = resp.get_json()
    assert 'error' in body
    assert body['error']['status'] == 404
    assert 'detail' in body['error']


def test_healthz(client):
    assert client.get('/healthz').get_json() == {'status': 'ok'}


def test_internal_error_shape(client, app_instance, monkeypatch):
    from tests.test_lifecycle_helpers import jwt_headers
    import siteledger.routes.finances as fin_mod

    def boom_get_ledger():
        raise RuntimeError('explode')
    monkeypatch.setattr(fin_mod, 'get_ledger', boom_get_ledger)
    with app_instance.app_context():
        headers = jwt_headers(51, role='manager')
    resp = client.get('/finances/transactions', headers=headers)
    assert resp.status_code == 500
    body = resp.get_json()
    assert body['error']['status'] == 500
    assert body['error']['detail'] == 'Unexpected error'


def test_timeout_maps_to_gateway_timeout(client, app_instance, monkeypatch):
    from tests.test_lifecycle_helpers import jwt_headers
    from siteledger.errors import LedgerTimeoutError
    import siteledger.routes.finances as fin_mod

    class SlowLedger:
        def list(self, **_kw):
            raise LedgerTimeoutError('project lookup did not respond within 5s')

    class Engine:
        ledger = SlowLedger()
    monkeypatch.setattr(fin_mod, 'get_ledger', lambda: Engine())
    with app_instance.app_context():
        headers = jwt_headers(52, role='manager')
    resp = client.get('/finances/transactions', headers=headers)
    assert resp.status_code == 504
    assert resp.get_json()['error']['kind'] == 'LedgerTimeoutError'
