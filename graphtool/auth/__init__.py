"""
Authentication for Microsoft Graph app-only access.

Three mutually exclusive methods: client secret, PFX certificate file, or a
certificate exported from the Windows certificate store by thumbprint.
"""

from .cert_store import (
    CertificateExporter,
    UnsupportedCertStoreExporter,
    WindowsCertStoreExporter,
    default_exporter,
)
from .models import (
    AuthInput,
    CertificateFileAuth,
    CertificateMaterial,
    ClientSecretAuth,
    StoreThumbprintAuth,
)
from .pkcs12 import decode_pkcs12, to_pem_bundle
from .resolver import resolve_credential

__all__ = [
    "AuthInput",
    "CertificateExporter",
    "CertificateFileAuth",
    "CertificateMaterial",
    "ClientSecretAuth",
    "StoreThumbprintAuth",
    "UnsupportedCertStoreExporter",
    "WindowsCertStoreExporter",
    "decode_pkcs12",
    "default_exporter",
    "resolve_credential",
    "to_pem_bundle",
]
