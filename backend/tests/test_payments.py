from datetime import datetime

from sqlmodel import Session

from admin_panel import models
from admin_panel.database import engine
from admin_panel.services import PaymentService


def _payment(**fields):
    body = {
        'transactionId': 'txn_1',
        'customerName': 'Ada Lovelace',
        'customerEmail': 'ada@example.com',
        'planName': 'Pro',
        'amount': 19.0,
        'status': 'completed',
    }
    body.update(fields)
    return body


def _seed(rows):
    with Session(engine) as session:
        for i, (created, status, amount, tenant) in enumerate(rows):
            session.add(models.Payment(
                tenant=tenant, transaction_id=f'seed_{i}', plan_name='Pro', amount=amount,
                status=status, customer_name=f'Customer {i}', created_at=created,
            ))
        session.commit()


def test_create_payment_and_validation(client, admin_headers):
    r = client.post('/api/admin/payments', json=_payment(currency='eur'), headers=admin_headers)
    assert r.status_code == 201
    p = r.json()['payment']
    assert p['transactionId'] == 'txn_1'
    assert p['currency'] == 'EUR'
    assert p['tenant'] == 'cybomb'
    assert client.post('/api/admin/payments', json=_payment(), headers=admin_headers).status_code == 400
    assert client.post('/api/admin/payments', json=_payment(transactionId='t2', amount=-1), headers=admin_headers).status_code == 400
    assert client.post('/api/admin/payments', json=_payment(transactionId='t3', status='paid'), headers=admin_headers).status_code == 400
    assert client.post('/api/admin/payments', json=_payment(transactionId='t4', billingCycle='weekly'), headers=admin_headers).status_code == 400
    assert client.post('/api/admin/payments', json=_payment(transactionId='t5')).status_code == 401


def test_list_filters_with_inclusive_dates(client, admin_headers):
    _seed([
        (datetime(2024, 3, 1, 9), 'completed', 10.0, 'cybomb'),
        (datetime(2024, 3, 15, 23, 59), 'pending', 20.0, 'cybomb'),
        (datetime(2024, 3, 16, 0, 1), 'completed', 30.0, 'cybomb'),
        (datetime(2024, 3, 10), 'completed', 40.0, 'rankseo'),
    ])
    r = client.get('/api/admin/payments?startDate=2024-03-01&endDate=2024-03-15', headers=admin_headers).json()
    assert sorted(p['amount'] for p in r['payments']) == [10.0, 20.0, 40.0]
    r2 = client.get('/api/admin/payments?status=completed&tenant=cybomb', headers=admin_headers).json()
    assert sorted(p['amount'] for p in r2['payments']) == [10.0, 30.0]
    r3 = client.get('/api/admin/payments?search=customer 3', headers=admin_headers).json()
    assert [p['amount'] for p in r3['payments']] == [40.0]
    assert client.get('/api/admin/payments?status=bogus', headers=admin_headers).status_code == 400
    assert client.get('/api/admin/payments?startDate=2024-03-10&endDate=2024-03-01', headers=admin_headers).status_code == 400
    assert client.get('/api/admin/payments?startDate=not-a-date', headers=admin_headers).status_code == 422


def test_payment_stats():
    now = datetime(2024, 3, 20, 12)
    _seed([
        (datetime(2024, 2, 10), 'completed', 100.0, 'cybomb'),
        (datetime(2024, 3, 2), 'completed', 25.5, 'cybomb'),
        (datetime(2024, 3, 3), 'refunded', 50.0, 'cybomb'),
        (datetime(2024, 3, 4), 'pending', 10.0, 'rankseo'),
    ])
    with Session(engine) as session:
        stats = PaymentService(session).stats(now=now)
        cybomb = PaymentService(session).stats('cybomb', now=now)
    assert stats['totalRevenue'] == 125.5
    assert stats['monthlyRevenue'] == 25.5
    assert stats['totalPayments'] == 4
    assert stats['paymentStatusCounts'] == {'pending': 1, 'completed': 2, 'failed': 0, 'refunded': 1, 'cancelled': 0}
    assert cybomb['totalPayments'] == 3


def test_get_and_update_status(client, admin_headers):
    pid = client.post('/api/admin/payments', json=_payment(status='pending'), headers=admin_headers).json()['payment']['id']
    assert client.get(f'/api/admin/payments/{pid}', headers=admin_headers).json()['payment']['status'] == 'pending'
    r = client.patch(f'/api/admin/payments/{pid}/status', json={'status': 'completed'}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()['payment']['status'] == 'completed'
    assert client.patch(f'/api/admin/payments/{pid}/status', json={'status': 'lost'}, headers=admin_headers).status_code == 400
    assert client.patch('/api/admin/payments/999/status', json={'status': 'failed'}, headers=admin_headers).status_code == 404
    assert client.get('/api/admin/payments/999', headers=admin_headers).status_code == 404
    stats = client.get('/api/admin/payments/stats', headers=admin_headers).json()['stats']
    assert stats['totalRevenue'] == 19.0
