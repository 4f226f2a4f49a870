"""
Authentication inputs and decoded certificate material.

AuthInput is a closed union: the configuration layer builds exactly one of
the three variants after checking that only one method was supplied.
"""

from dataclasses import dataclass, field
from typing import Union

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric.types import PrivateKeyTypes


@dataclass(frozen=True)
class ClientSecretAuth:
    secret: str = field(repr=False)


@dataclass(frozen=True)
class CertificateFileAuth:
    path: str
    password: str = field(default="", repr=False)


@dataclass(frozen=True)
class StoreThumbprintAuth:
    thumbprint: str


AuthInput = Union[ClientSecretAuth, CertificateFileAuth, StoreThumbprintAuth]


@dataclass(frozen=True)
class CertificateMaterial:
    """Private key, leaf certificate and CA chain recovered from a PKCS#12 blob."""

    private_key: PrivateKeyTypes = field(repr=False)
    certificate: x509.Certificate
    chain: tuple[x509.Certificate, ...] = ()

    @property
    def certificates(self) -> list[x509.Certificate]:
        """Leaf first, then the chain in container order."""
        return [self.certificate, *self.chain]
