"""
PKCS#12 (PFX) decoding for certificate-based app authentication.

decode_pkcs12() recovers the private key, the leaf certificate that matches
it and any CA certificates bundled in the container. to_pem_bundle() turns
that material into the PEM layout azure-identity's CertificateCredential
accepts: key, then leaf, then chain.
"""

import logging

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.serialization import pkcs12

from ..exceptions import CertificateDecodeError
from .models import CertificateMaterial

logger = logging.getLogger(__name__)

_PUBLIC_FORMAT = (
    serialization.Encoding.DER,
    serialization.PublicFormat.SubjectPublicKeyInfo,
)


def _public_der(obj) -> bytes:
    return obj.public_key().public_bytes(*_PUBLIC_FORMAT)


def _load(blob: bytes, password: str):
    if password:
        return pkcs12.load_key_and_certificates(blob, password.encode("utf-8"))
    # Exports without a password may be unencrypted or encrypted with ""
    try:
        return pkcs12.load_key_and_certificates(blob, None)
    except ValueError:
        return pkcs12.load_key_and_certificates(blob, b"")


def decode_pkcs12(blob: bytes, password: str) -> CertificateMaterial:
    """
    Decode a PKCS#12 container.

    Raises:
        CertificateDecodeError: wrong password, corrupt data, unsupported
            algorithm, or a container without a private key or a certificate
            matching it. The decoder's own exception is kept as __cause__.
    """
    if not blob:
        raise CertificateDecodeError("failed to decode PFX: container is empty")

    try:
        key, cert, extra = _load(blob, password)
    except (ValueError, TypeError) as e:
        raise CertificateDecodeError(f"failed to decode PFX: {e}") from e
    except Exception as e:
        # cryptography raises UnsupportedAlgorithm for exotic PBE/MAC choices
        raise CertificateDecodeError(
            f"failed to decode PFX: {type(e).__name__}: {e}"
        ) from e

    if key is None:
        raise CertificateDecodeError("failed to decode PFX: no private key in container")

    candidates: list[x509.Certificate] = ([cert] if cert is not None else []) + list(extra)
    if not candidates:
        raise CertificateDecodeError("failed to decode PFX: no certificate in container")

    key_der = _public_der(key)
    leaf = next((c for c in candidates if _public_der(c) == key_der), None)
    if leaf is None:
        raise CertificateDecodeError(
            "failed to decode PFX: no certificate matches the private key"
        )

    chain = tuple(c for c in candidates if c is not leaf)
    logger.debug(
        "PFX decoded: subject=%s, chain certificates=%d",
        leaf.subject.rfc4514_string(), len(chain),
    )
    return CertificateMaterial(private_key=key, certificate=leaf, chain=chain)


def to_pem_bundle(material: CertificateMaterial) -> bytes:
    """Serialise material as unencrypted PKCS#8 key followed by leaf-first certificates."""
    parts = [
        material.private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
    ]
    parts.extend(c.public_bytes(serialization.Encoding.PEM) for c in material.certificates)
    return b"".join(parts)
