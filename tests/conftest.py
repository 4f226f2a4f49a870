"""Shared fixtures for graphtool tests."""

import os
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import NameOID

TENANT_ID = "11111111-2222-3333-4444-555555555555"
CLIENT_ID = "66666666-7777-8888-9999-000000000000"
MAILBOX = "user@example.com"
PFX_PASSWORD = "s3cret-pass"


@pytest.fixture(autouse=True)
def isolate_env(monkeypatch):
    """Prevent tests from reading real MSGRAPH_* settings or proxies."""
    for key in list(os.environ):
        if key.startswith("MSGRAPH"):
            monkeypatch.delenv(key, raising=False)
    for key in ("HTTP_PROXY", "HTTPS_PROXY", "http_proxy", "https_proxy"):
        monkeypatch.delenv(key, raising=False)


def _name(cn: str) -> x509.Name:
    return x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, cn)])


def _issue(subject: str, issuer: x509.Name, public_key, signing_key, *, ca: bool) -> x509.Certificate:
    now = datetime.now(timezone.utc)
    return (
        x509.CertificateBuilder()
        .subject_name(_name(subject))
        .issuer_name(issuer)
        .public_key(public_key)
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(minutes=5))
        .not_valid_after(now + timedelta(days=1))
        .add_extension(x509.BasicConstraints(ca=ca, path_length=None), critical=True)
        .sign(signing_key, hashes.SHA256())
    )


@pytest.fixture(scope="session")
def pki():
    """A throwaway CA and a leaf certificate it signed (RSA, as azure-identity requires)."""
    ca_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    ca_cert = _issue("graphtool test CA", _name("graphtool test CA"), ca_key.public_key(), ca_key, ca=True)
    leaf_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    leaf_cert = _issue("graphtool test app", ca_cert.subject, leaf_key.public_key(), ca_key, ca=False)
    return SimpleNamespace(ca_key=ca_key, ca_cert=ca_cert, leaf_key=leaf_key, leaf_cert=leaf_cert)


def make_pfx(key, cert, cas=None, password: str = PFX_PASSWORD) -> bytes:
    encryption = (
        serialization.BestAvailableEncryption(password.encode())
        if password
        else serialization.NoEncryption()
    )
    return pkcs12.serialize_key_and_certificates(b"graphtool", key, cert, cas, encryption)


@pytest.fixture(scope="session")
def pfx_bytes(pki) -> bytes:
    """Password-protected PFX with key, leaf and one CA certificate."""
    return make_pfx(pki.leaf_key, pki.leaf_cert, [pki.ca_cert])


@pytest.fixture
def pfx_file(tmp_path, pfx_bytes):
    path = tmp_path / "app.pfx"
    path.write_bytes(pfx_bytes)
    return path


@pytest.fixture
def base_env(monkeypatch):
    """Minimal valid identity for Settings built from the environment."""
    monkeypatch.setenv("MSGRAPH_TENANT_ID", TENANT_ID)
    monkeypatch.setenv("MSGRAPH_CLIENT_ID", CLIENT_ID)
    monkeypatch.setenv("MSGRAPH_MAILBOX", MAILBOX)
    monkeypatch.setenv("MSGRAPH_SECRET", "test-secret")
