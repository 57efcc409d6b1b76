def _plan(**fields):
    body = {
        'name': 'Starter',
        'monthlyUSD': 9,
        'annualUSD': 90,
        'features': [{'name': 'Reports', 'included': True}, {'name': '  ', 'included': True}],
    }
    body.update(fields)
    return body


def test_free_plan_invariant(client, admin_headers):
    r = client.post('/api/admin/pricing', json=_plan(isFree=True, custom=True), headers=admin_headers)
    assert r.status_code == 201
    plan = r.json()['plan']
    assert plan['monthlyUSD'] == 0 and plan['annualUSD'] == 0
    assert plan['custom'] is False
    # blank feature names are dropped
    assert plan['features'] == [{'name': 'Reports', 'included': True}]


def test_plan_validation(client, admin_headers):
    assert client.post('/api/admin/pricing', json=_plan(monthlyUSD=-5), headers=admin_headers).status_code == 400
    assert client.post('/api/admin/pricing', json=_plan(name=''), headers=admin_headers).status_code == 400
    assert client.post('/api/admin/pricing', json=_plan(tenant='nowhere'), headers=admin_headers).status_code == 400
    assert client.post('/api/admin/pricing', json=_plan()).status_code == 401


def test_flat_quota_fields_become_limits(client, admin_headers):
    r = client.post('/api/admin/pricing', json=_plan(maxAuditsPerMonth=50, limits={'maxSites': 3}), headers=admin_headers)
    plan = r.json()['plan']
    assert plan['limits'] == {'maxSites': 3, 'maxAuditsPerMonth': 50}
    assert plan['maxAuditsPerMonth'] == 50


def test_public_listing_only_active_sorted(client, admin_headers):
    a = client.post('/api/admin/pricing', json=_plan(name='B', sortOrder=2), headers=admin_headers).json()['plan']
    client.post('/api/admin/pricing', json=_plan(name='A', sortOrder=1), headers=admin_headers)
    client.post('/api/admin/pricing', json=_plan(name='Other', tenant='rankseo'), headers=admin_headers)
    r = client.patch(f"/api/admin/pricing/{a['id']}/toggle-status", headers=admin_headers)
    assert r.json()['plan']['isActive'] is False
    public = client.get('/api/pricing').json()['plans']
    assert [p['name'] for p in public] == ['A']
    admin_view = client.get('/api/admin/pricing?tenant=cybomb', headers=admin_headers).json()['plans']
    assert [p['name'] for p in admin_view] == ['A', 'B']
    assert [p['name'] for p in client.get('/api/pricing?tenant=rankseo').json()['plans']] == ['Other']


def test_bulk_upsert(client, admin_headers):
    existing = client.post('/api/admin/pricing', json=_plan(name='Old'), headers=admin_headers).json()['plan']
    r = client.put('/api/admin/pricing', json={'plans': [
        {'name': 'Free', 'isFree': True, 'monthlyUSD': 5},
        {'_id': existing['_id'], 'name': 'Renamed', 'monthlyUSD': 12},
        {'name': 'Enterprise', 'custom': True},
    ]}, headers=admin_headers)
    assert r.status_code == 200
    plans = r.json()['plans']
    assert [(p['name'], p['sortOrder']) for p in plans] == [('Free', 0), ('Renamed', 1), ('Enterprise', 2)]
    assert plans[0]['monthlyUSD'] == 0
    assert plans[1]['id'] == existing['id']
    assert plans[1]['monthlyUSD'] == 12


def test_bulk_upsert_is_all_or_nothing(client, admin_headers):
    r = client.put('/api/admin/pricing', json={'plans': [
        {'name': 'Good'},
        {'name': 'Bad', 'annualUSD': -1},
    ]}, headers=admin_headers)
    assert r.status_code == 400
    assert client.get('/api/admin/pricing', headers=admin_headers).json()['plans'] == []
    r2 = client.put('/api/admin/pricing', json={'plans': [{'id': 424242, 'name': 'Ghost'}]}, headers=admin_headers)
    assert r2.status_code == 400


def test_update_delete_and_defaults(client, admin_headers):
    r = client.post('/api/admin/pricing/initialize-defaults', headers=admin_headers)
    assert r.status_code == 201
    plans = r.json()['plans']
    assert [p['name'] for p in plans] == ['Free', 'Pro', 'Enterprise']
    assert plans[0]['isFree'] is True and plans[2]['custom'] is True
    assert client.post('/api/admin/pricing/initialize-defaults', headers=admin_headers).status_code == 409
    assert client.post('/api/admin/pricing/initialize-defaults?tenant=aitals', headers=admin_headers).status_code == 201

    pro = plans[1]
    r2 = client.put(f"/api/admin/pricing/{pro['id']}", json={'isFree': True}, headers=admin_headers)
    assert r2.status_code == 200
    assert r2.json()['plan']['monthlyUSD'] == 0
    assert client.put('/api/admin/pricing/9999', json={'name': 'x'}, headers=admin_headers).status_code == 404
    assert client.delete(f"/api/admin/pricing/{pro['id']}", headers=admin_headers).status_code == 200
    assert client.delete(f"/api/admin/pricing/{pro['id']}", headers=admin_headers).status_code == 404
    assert client.patch('/api/admin/pricing/9999/toggle-status', headers=admin_headers).status_code == 404


def test_single_quota_update_keeps_other_limits(client, admin_headers):
    plan = client.post(
        '/api/admin/pricing', json=_plan(limits={'maxSites': 3, 'maxAudits': 50}), headers=admin_headers,
    ).json()['plan']
    r = client.put(f"/api/admin/pricing/{plan['id']}", json={'maxSites': 5}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()['plan']['limits'] == {'maxSites': 5, 'maxAudits': 50}
    # an explicit limits object still replaces the stored one
    r2 = client.put(f"/api/admin/pricing/{plan['id']}", json={'limits': {'maxSites': 1}}, headers=admin_headers)
    assert r2.json()['plan']['limits'] == {'maxSites': 1}
