"""
Credential resolution: AuthInput -> azure-identity TokenCredential.

    credential = resolve_credential(tenant_id, client_id, ClientSecretAuth("..."))

Secret inputs become a ClientSecretCredential. PFX files and store exports go
through the same PKCS#12 decode path and become a CertificateCredential that
sends the full leaf-first chain. No network calls happen here; tokens are
acquired lazily by the credential.
"""

import logging
from pathlib import Path

from azure.core.credentials import TokenCredential
from azure.identity import CertificateCredential, ClientSecretCredential

from ..exceptions import (
    CertStoreError,
    FileUnreadableError,
    NoMethodProvidedError,
    StoreExportError,
)
from ..utils.masking import mask_guid
from .cert_store import CertificateExporter, default_exporter
from .models import AuthInput, CertificateFileAuth, ClientSecretAuth, StoreThumbprintAuth
from .pkcs12 import decode_pkcs12, to_pem_bundle

logger = logging.getLogger(__name__)

NO_METHOD_MESSAGE = (
    "no valid authentication method provided (use --secret, --pfx, or --thumbprint)"
)


def resolve_credential(
    tenant_id: str,
    client_id: str,
    auth: AuthInput | None,
    *,
    exporter: CertificateExporter | None = None,
) -> TokenCredential:
    """
    Build the signing credential for one run.

    Raises:
        NoMethodProvidedError: auth is None or not a known variant.
        FileUnreadableError: the PFX file could not be read.
        CertificateDecodeError: the PKCS#12 data could not be decoded.
        StoreExportError: the certificate store could not export the certificate.
    """
    logger.debug(
        "Setting up credential (tenant=%s, client=%s)",
        mask_guid(tenant_id), mask_guid(client_id),
    )

    if isinstance(auth, ClientSecretAuth):
        logger.debug("Authentication method: client secret")
        return ClientSecretCredential(tenant_id, client_id, auth.secret)

    if isinstance(auth, CertificateFileAuth):
        logger.debug("Authentication method: PFX certificate file (%s)", auth.path)
        try:
            blob = Path(auth.path).read_bytes()
        except OSError as e:
            logger.error("Failed to read PFX file %s: %s", auth.path, e.strerror or e)
            raise FileUnreadableError(auth.path, e.strerror or str(e)) from e
        logger.debug("PFX file read (%d bytes)", len(blob))
        return _certificate_credential(tenant_id, client_id, blob, auth.password)

    if isinstance(auth, StoreThumbprintAuth):
        logger.debug("Authentication method: certificate store (%s)", auth.thumbprint)
        exporter = exporter or default_exporter()
        try:
            blob, one_time_password = exporter.export(auth.thumbprint)
        except CertStoreError as e:
            raise StoreExportError(f"failed to export cert from store: {e}") from e
        logger.debug("Certificate exported (%d bytes)", len(blob))
        return _certificate_credential(tenant_id, client_id, blob, one_time_password)

    raise NoMethodProvidedError(NO_METHOD_MESSAGE)


def _certificate_credential(
    tenant_id: str, client_id: str, blob: bytes, password: str
) -> CertificateCredential:
    material = decode_pkcs12(blob, password)
    return CertificateCredential(
        tenant_id,
        client_id,
        certificate_data=to_pem_bundle(material),
        send_certificate_chain=True,
    )
