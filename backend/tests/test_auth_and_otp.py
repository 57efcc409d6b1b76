from datetime import timedelta

from sqlmodel import Session

from admin_panel import models, services
from admin_panel.config import settings
from admin_panel.database import engine
from admin_panel.models import utcnow


def _login(client, email="admin@example.com", password="secret123"):
    return client.post('/api/auth/login', json={'email': email, 'password': password})


def _set_otp_expiry(email, expires_at):
    with Session(engine) as session:
        user = services.AuthService(session).user_repo.get_by_email(email)
        user.otp_expires_at = expires_at
        session.add(user)
        session.commit()


def test_register_bootstrap_then_closed(client, headers_for):
    r = client.post('/api/auth/register', json={'name': 'Root', 'email': 'root@example.com', 'password': 'rootpass1', 'role': 'superadmin'})
    assert r.status_code == 201
    assert r.json()['msg'] == 'User registered successfully'
    assert isinstance(r.json()['userId'], int)
    # a superadmin now exists; anonymous registration is closed
    r2 = client.post('/api/auth/register', json={'name': 'X', 'email': 'x@example.com', 'password': 'xpass123'})
    assert r2.status_code == 403
    with Session(engine) as session:
        root = services.AuthService(session).user_repo.get_by_email('root@example.com')
    r3 = client.post('/api/auth/register', json={'name': 'X', 'email': 'x@example.com', 'password': 'xpass123'}, headers=headers_for(root))
    assert r3.status_code == 201


def test_register_rejects_bad_role_and_duplicate(client, make_user):
    r = client.post('/api/auth/register', json={'name': 'A', 'email': 'a@example.com', 'password': 'apass123', 'role': 'owner'})
    assert r.status_code == 400
    assert 'invalid role' in r.json()['detail']
    make_user('a@example.com')
    r2 = client.post('/api/auth/register', json={'name': 'A', 'email': 'A@example.com', 'password': 'apass123'})
    assert r2.status_code == 400
    assert r2.json()['error'] == 'User already exists with this email'


def test_login_wrong_password(client, make_user):
    make_user()
    r = _login(client, password='nope-nope')
    assert r.status_code == 401
    assert r.json()['detail'] == 'Invalid credentials'
    r2 = _login(client, email='ghost@example.com')
    assert r2.status_code == 401


def test_superadmin_login_gets_token_and_cookie(client, superadmin):
    r = _login(client, 'root@example.com', 'rootpass1')
    assert r.status_code == 200
    body = r.json()
    assert body['token']
    assert 'requiresOtp' not in body
    assert body['user']['role'] == 'superadmin'
    assert 'password_hash' not in body['user']
    assert 'token' in r.cookies
    # cookie alone authenticates
    me = client.get('/api/auth/me')
    assert me.status_code == 200
    assert me.json()['user']['email'] == 'root@example.com'
    assert me.json()['user']['lastLoginAt'] is not None


def test_admin_login_requires_otp(client, make_user, outbox):
    make_user()
    r = _login(client)
    assert r.status_code == 200
    body = r.json()
    assert body['requiresOtp'] is True
    assert 'token' not in body
    assert outbox.otps[-1][0] == 'admin@example.com'
    otp = outbox.last_otp
    assert len(otp) == 6 and otp.isdigit()
    # the temp token is not an access token
    assert client.get('/api/auth/me', headers={'Authorization': f"Bearer {body['tempToken']}"}).status_code == 401
    r2 = client.post('/api/auth/verify-otp', json={'tempToken': body['tempToken'], 'otp': otp})
    assert r2.status_code == 200
    token = r2.json()['token']
    me = client.get('/api/auth/me', headers={'Authorization': f'Bearer {token}'})
    assert me.status_code == 200
    # the code is single use
    r3 = client.post('/api/auth/verify-otp', json={'tempToken': body['tempToken'], 'otp': otp})
    assert r3.status_code == 400


def test_access_token_rejected_as_temp_token(client, superadmin):
    token = _login(client, 'root@example.com', 'rootpass1').json()['token']
    r = client.post('/api/auth/verify-otp', json={'tempToken': token, 'otp': '123456'})
    assert r.status_code == 401


def test_wrong_otp_counts_attempts_until_cleared(client, make_user, outbox):
    make_user()
    temp = _login(client).json()['tempToken']
    good = outbox.last_otp
    bad = '000000' if good != '000000' else '111111'
    for _ in range(4):
        r = client.post('/api/auth/verify-otp', json={'tempToken': temp, 'otp': bad})
        assert r.status_code == 400
        assert r.json()['detail'] == 'Invalid OTP'
    r = client.post('/api/auth/verify-otp', json={'tempToken': temp, 'otp': bad})
    assert r.status_code == 400
    assert 'Too many invalid attempts' in r.json()['detail']
    # exhausted: even the right code no longer works
    r = client.post('/api/auth/verify-otp', json={'tempToken': temp, 'otp': good})
    assert r.status_code == 400
    assert 'No OTP pending' in r.json()['detail']


def test_expired_otp(client, make_user, outbox):
    make_user()
    temp = _login(client).json()['tempToken']
    _set_otp_expiry('admin@example.com', utcnow() - timedelta(seconds=1))
    r = client.post('/api/auth/verify-otp', json={'tempToken': temp, 'otp': outbox.last_otp})
    assert r.status_code == 400
    assert r.json()['detail'] == 'OTP expired'


def test_resend_otp_cooldown_and_rotation(client, make_user, outbox):
    make_user()
    temp = _login(client).json()['tempToken']
    first = outbox.last_otp
    r = client.post('/api/auth/resend-otp', json={'tempToken': temp})
    assert r.status_code == 429
    assert int(r.headers['Retry-After']) > 0
    # pretend the first code was issued a minute ago
    _set_otp_expiry('admin@example.com', utcnow() + timedelta(minutes=10) - timedelta(seconds=60))
    r2 = client.post('/api/auth/resend-otp', json={'tempToken': temp})
    assert r2.status_code == 200
    assert len(outbox.otps) == 2
    second = outbox.last_otp
    if first != second:
        r3 = client.post('/api/auth/verify-otp', json={'tempToken': r2.json()['tempToken'], 'otp': first})
        assert r3.status_code == 400
    r4 = client.post('/api/auth/verify-otp', json={'tempToken': r2.json()['tempToken'], 'otp': second})
    assert r4.status_code == 200


def test_otp_mail_failure_is_502(client, make_user, outbox):
    make_user()
    outbox.fail = True
    r = _login(client)
    assert r.status_code == 502


def test_invalid_temp_token(client):
    r = client.post('/api/auth/verify-otp', json={'tempToken': 'garbage', 'otp': '123456'})
    assert r.status_code == 401


def test_me_requires_token(client):
    r = client.get('/api/auth/me')
    assert r.status_code == 401
    assert r.json()['detail'] == 'Access denied. No token provided.'
    r2 = client.get('/api/auth/me', headers={'Authorization': 'Bearer not-a-jwt'})
    assert r2.status_code == 401
    assert r2.json()['detail'] == 'Invalid token'


def test_token_for_deleted_user(client, make_user, headers_for):
    user = make_user()
    headers = headers_for(user)
    with Session(engine) as session:
        session.delete(session.get(models.User, user.id))
        session.commit()
    r = client.get('/api/auth/me', headers=headers)
    assert r.status_code == 401
    assert r.json()['detail'] == 'User not found'


def test_logout_clears_cookie(client, superadmin):
    _login(client, 'root@example.com', 'rootpass1')
    assert client.get('/api/auth/me').status_code == 200
    r = client.post('/api/auth/logout')
    assert r.status_code == 200
    client.cookies.clear()
    assert client.get('/api/auth/me').status_code == 401


def test_login_rate_limited(client, make_user):
    make_user()
    for _ in range(10):
        assert _login(client, password='wrong-pass').status_code == 401
    r = _login(client, password='wrong-pass')
    assert r.status_code == 429
    assert 'Retry-After' in r.headers


def _login_from(client, forwarded_for):
    return client.post(
        '/api/auth/login',
        json={'email': 'admin@example.com', 'password': 'wrong-pass'},
        headers={'X-Forwarded-For': forwarded_for},
    )


def test_forwarded_for_ignored_without_trusted_proxy(client, make_user):
    make_user()
    for i in range(10):
        assert _login_from(client, f'10.0.0.{i}').status_code == 401
    assert _login_from(client, '10.0.0.99').status_code == 429


def test_forwarded_for_used_behind_trusted_proxy(client, make_user, monkeypatch):
    monkeypatch.setattr(settings, 'TRUST_PROXY', True)
    make_user()
    for _ in range(10):
        assert _login_from(client, '10.0.0.1').status_code == 401
    assert _login_from(client, '10.0.0.1, 172.16.0.1').status_code == 429
    assert _login_from(client, '10.0.0.2').status_code == 401


def test_request_id_header(client):
    r = client.get('/health', headers={'X-Request-ID': 'abc123'})
    assert r.json() == {'status': 'ok'}
    assert r.headers['X-Request-ID'] == 'abc123'
    assert client.get('/').json() == {'message': 'API running'}
