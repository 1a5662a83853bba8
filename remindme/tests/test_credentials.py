import threading
import time
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from jose import jwt

from remindme.exceptions import CredentialError
from remindme.push.credentials import (
    APNsTokenCache,
    FCMTokenCache,
    project_id_from_credentials,
)


class Clock:
    def __init__(self):
        self.now = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


def _p8_key():
    key = ec.generate_private_key(ec.SECP256R1())
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()


def test_apns_token_is_es256_with_key_id_and_team_issuer():
    clock = Clock()
    cache = APNsTokenCache("KEY123", "TEAM456", _p8_key(), clock=clock)

    token = cache.get_token()

    header = jwt.get_unverified_header(token)
    claims = jwt.get_unverified_claims(token)
    assert header["alg"] == "ES256"
    assert header["kid"] == "KEY123"
    assert claims["iss"] == "TEAM456"
    assert claims["iat"] == int(clock.now.timestamp())


def test_apns_token_reused_until_fifty_minutes():
    clock = Clock()
    cache = APNsTokenCache("KEY123", "TEAM456", _p8_key(), clock=clock)

    first = cache.get_token()
    clock.advance(minutes=49)
    assert cache.get_token() == first

    clock.advance(minutes=2)
    second = cache.get_token()
    assert second != first
    assert jwt.get_unverified_claims(second)["iat"] == int(clock.now.timestamp())


def test_apns_bad_key_raises_credential_error():
    cache = APNsTokenCache("KEY123", "TEAM456", "not a key")
    with pytest.raises(CredentialError):
        cache.get_token()


class FakeCertificate:
    def __init__(self, clock, delay=0.0, lifetime=timedelta(hours=1)):
        self.clock = clock
        self.delay = delay
        self.lifetime = lifetime
        self.calls = 0
        self.fail = False
        self._lock = threading.Lock()

    def get_access_token(self):
        with self._lock:
            self.calls += 1
            n = self.calls
        if self.delay:
            time.sleep(self.delay)
        if self.fail:
            raise RuntimeError("token endpoint unreachable")
        # google-auth reports naive UTC expiries
        expiry = (self.clock() + self.lifetime).replace(tzinfo=None)
        return SimpleNamespace(access_token=f"ya29.token-{n}", expiry=expiry)


def test_fcm_concurrent_readers_trigger_single_refresh():
    clock = Clock()
    certificate = FakeCertificate(clock, delay=0.05)
    cache = FCMTokenCache(
        '{"project_id": "demo"}', clock=clock, certificate_factory=lambda info: certificate
    )

    barrier = threading.Barrier(8)
    tokens = []

    def reader():
        barrier.wait()
        tokens.append(cache.get_token())

    threads = [threading.Thread(target=reader) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert certificate.calls == 1
    assert set(tokens) == {"ya29.token-1"}


def test_fcm_refreshes_one_minute_before_expiry():
    clock = Clock()
    certificate = FakeCertificate(clock)
    cache = FCMTokenCache("{}", clock=clock, certificate_factory=lambda info: certificate)

    assert cache.get_token() == "ya29.token-1"
    clock.advance(minutes=58)
    assert cache.get_token() == "ya29.token-1"
    clock.advance(minutes=1, seconds=30)
    assert cache.get_token() == "ya29.token-2"


def test_fcm_refresh_failure_leaves_cache_retryable():
    clock = Clock()
    certificate = FakeCertificate(clock)
    certificate.fail = True
    cache = FCMTokenCache("{}", clock=clock, certificate_factory=lambda info: certificate)

    with pytest.raises(CredentialError):
        cache.get_token()

    certificate.fail = False
    assert cache.get_token() == "ya29.token-2"


def test_invalidate_forces_refresh():
    clock = Clock()
    certificate = FakeCertificate(clock)
    cache = FCMTokenCache("{}", clock=clock, certificate_factory=lambda info: certificate)

    cache.get_token()
    cache.invalidate()
    assert cache.get_token() == "ya29.token-2"


def test_fcm_invalid_json_is_credential_error():
    cache = FCMTokenCache("{not json", certificate_factory=lambda info: None)
    with pytest.raises(CredentialError):
        cache.get_token()


def test_project_id_from_credentials():
    assert project_id_from_credentials('{"project_id": "remindme-prod"}') == "remindme-prod"
    assert project_id_from_credentials("garbage") is None
