from datetime import timedelta

import pytest

from admin_panel import services
from admin_panel.utils.pagination import clamp, pagination_meta
from admin_panel.utils.rate_limit import InMemoryRateLimiter


def test_rate_limiter_blocks_after_max_and_resets():
    limiter = InMemoryRateLimiter()
    assert limiter.allow('k', 2, 60) == (True, 0)
    assert limiter.allow('k', 2, 60) == (True, 0)
    allowed, retry_after = limiter.allow('k', 2, 60)
    assert allowed is False
    assert 1 <= retry_after <= 60
    # keys are independent
    assert limiter.allow('other', 2, 60)[0] is True
    limiter.reset('k')
    assert limiter.allow('k', 2, 60)[0] is True


def test_rate_limiter_window_slides():
    now = [1000.0]
    limiter = InMemoryRateLimiter(clock=lambda: now[0])
    assert limiter.allow('ip', 1, 60)[0] is True
    now[0] += 59
    assert limiter.allow('ip', 1, 60) == (False, 1)
    now[0] += 1
    assert limiter.allow('ip', 1, 60)[0] is True


def test_rate_limiter_forgets_idle_keys():
    now = [1000.0]
    limiter = InMemoryRateLimiter(clock=lambda: now[0], sweep_every=2)
    for i in range(5):
        limiter.allow(f'10.0.0.{i}', 10, 60)
    assert len(limiter) == 5
    now[0] += 61
    limiter.allow('fresh', 10, 60)
    limiter.allow('fresh', 10, 60)
    assert len(limiter) == 1
    # a key still inside its window survives the sweep
    limiter.allow('fresh', 10, 60)
    limiter.allow('other', 10, 60)
    assert len(limiter) == 2


def test_pagination_clamps_and_meta():
    assert clamp(None, None) == (1, 20)
    assert clamp(0, 500) == (1, 100)
    assert clamp(3, 0) == (3, 20)
    assert pagination_meta(1, 20, 0) == {
        'currentPage': 1, 'totalPages': 1, 'totalItems': 0, 'limit': 20, 'hasNext': False, 'hasPrev': False,
    }
    assert pagination_meta(2, 10, 25)['totalPages'] == 3


def test_resolve_tenant():
    assert services.resolve_tenant(None) == 'cybomb'
    assert services.resolve_tenant('rankseo') == 'rankseo'
    with pytest.raises(ValueError):
        services.resolve_tenant('nowhere')


def test_token_purpose_is_checked():
    temp = services.encode_token({'id': 1, 'purpose': services.PURPOSE_OTP}, timedelta(minutes=1))
    assert services.read_token(temp, services.PURPOSE_OTP)['id'] == 1
    with pytest.raises(services.AuthenticationError):
        services.read_token(temp, services.PURPOSE_ACCESS)
    expired = services.encode_token({'id': 1, 'purpose': services.PURPOSE_ACCESS}, timedelta(seconds=-5))
    with pytest.raises(services.AuthenticationError):
        services.read_token(expired, services.PURPOSE_ACCESS)


def test_generate_otp_digits():
    otp = services.generate_otp(8)
    assert len(otp) == 8 and otp.isdigit()
