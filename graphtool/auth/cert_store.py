"""
Certificate export from the platform certificate store.

On Windows the certificate is exported from Cert:\\CurrentUser\\My as a PFX
protected by a random one-time password, which is handed back to the caller
together with the blob and never written anywhere. Other platforms have no
such store; their exporter always reports the certificate as not exportable.
"""

import base64
import logging
import os
import re
import secrets
import subprocess
import sys
from typing import Protocol

from ..exceptions import CertificateNotExportableError, CertificateNotFoundError

logger = logging.getLogger(__name__)

_HEX_RE = re.compile(r"^[0-9A-F]+$")

_EXIT_NOT_FOUND = 2
_EXIT_NOT_EXPORTABLE = 3

_EXPORT_SCRIPT = r"""
$ErrorActionPreference = 'Stop'
$cert = Get-ChildItem -Path 'Cert:\CurrentUser\My' |
    Where-Object { $_.Thumbprint -eq $env:GRAPHTOOL_THUMBPRINT } |
    Select-Object -First 1
if (-not $cert) { exit 2 }
if (-not $cert.HasPrivateKey) { exit 3 }
try {
    $bytes = $cert.Export(
        [System.Security.Cryptography.X509Certificates.X509ContentType]::Pfx,
        $env:GRAPHTOOL_PFX_PASSWORD)
} catch { exit 3 }
[Convert]::ToBase64String($bytes)
"""


class CertificateExporter(Protocol):
    def export(self, thumbprint: str) -> tuple[bytes, str]:
        """Return (pkcs12_blob, password) for the certificate with this thumbprint."""
        ...


def normalize_thumbprint(thumbprint: str) -> str:
    """Strip separators and upper-case; raise CertificateNotFoundError if not hex."""
    cleaned = re.sub(r"[\s:]", "", thumbprint or "").upper()
    if not cleaned or not _HEX_RE.match(cleaned):
        raise CertificateNotFoundError(
            thumbprint, f"invalid certificate thumbprint {thumbprint!r}: expected hex"
        )
    return cleaned


class WindowsCertStoreExporter:
    """Exports certificates from the CurrentUser\\My store via PowerShell."""

    def __init__(self, powershell: str = "powershell.exe", timeout: float = 60.0):
        self.powershell = powershell
        self.timeout = timeout

    def export(self, thumbprint: str) -> tuple[bytes, str]:
        thumb = normalize_thumbprint(thumbprint)
        password = secrets.token_urlsafe(32)
        env = dict(os.environ)
        env["GRAPHTOOL_THUMBPRINT"] = thumb
        env["GRAPHTOOL_PFX_PASSWORD"] = password

        logger.debug("Exporting certificate %s from CurrentUser\\My", thumb)
        try:
            proc = subprocess.run(
                [self.powershell, "-NoProfile", "-NonInteractive", "-Command", _EXPORT_SCRIPT],
                capture_output=True,
                text=True,
                env=env,
                timeout=self.timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise CertificateNotExportableError(
                thumb, f"certificate store export failed: {e}"
            ) from e

        if proc.returncode == _EXIT_NOT_FOUND:
            raise CertificateNotFoundError(
                thumb, f"certificate with thumbprint {thumb} not found in CurrentUser\\My"
            )
        if proc.returncode != 0:
            detail = proc.stderr.strip() or f"exit code {proc.returncode}"
            raise CertificateNotExportableError(
                thumb, f"certificate {thumb} private key is not exportable: {detail}"
            )

        try:
            blob = base64.b64decode(proc.stdout.strip(), validate=True)
        except ValueError as e:
            raise CertificateNotExportableError(
                thumb, "certificate store returned malformed export data"
            ) from e
        return blob, password


class UnsupportedCertStoreExporter:
    """Stand-in for platforms without a Windows certificate store."""

    def export(self, thumbprint: str) -> tuple[bytes, str]:
        raise CertificateNotExportableError(
            thumbprint,
            f"certificate store export is only supported on Windows (platform: {sys.platform}); "
            "use a client secret or a PFX file instead",
        )


def default_exporter() -> CertificateExporter:
    if sys.platform == "win32":
        return WindowsCertStoreExporter()
    return UnsupportedCertStoreExporter()
