"""
Operation pipeline: the single entry point action handlers use for Graph calls.

Combines the run's GraphClient (which owns the signing credential) with the
retry orchestrator and error enrichment:

    pipeline = OperationPipeline(client, RetryPolicy(3, 2.0), cancellation)
    data = await pipeline.run("listEvents", lambda: pipeline.client.get(path))
"""

import logging
from typing import Awaitable, Callable, TypeVar

from azure.core.credentials import TokenCredential

from ..auth.models import AuthInput
from ..auth.resolver import resolve_credential
from ..auth.cert_store import CertificateExporter
from ..utils.retry import CancellationSignal, RetryPolicy, Sleeper, execute
from .base import enrich_graph_error
from .client import GraphClient

logger = logging.getLogger(__name__)

SINGLE_ATTEMPT = RetryPolicy(max_retries=0)

T = TypeVar("T")


class OperationPipeline:
    """Executes outbound Graph calls with retry, cancellation and enrichment."""

    def __init__(
        self,
        client: GraphClient,
        policy: RetryPolicy,
        cancellation: CancellationSignal | None = None,
        *,
        sleep: Sleeper | None = None,
    ) -> None:
        self.client = client
        self.policy = policy
        self.cancellation = cancellation
        self._sleep = sleep

    async def run(
        self,
        operation: str,
        call: Callable[[], Awaitable[T]],
        *,
        retry: bool = True,
    ) -> T:
        """
        Execute ``call`` under the retry policy, or exactly once when
        ``retry`` is False (for calls that must not be repeated, like sendMail).

        Raises the original permanent error, RetryExhaustedError, or a
        cancellation error; throttling and outage failures are re-raised as
        their enriched counterparts with the original kept as __cause__.
        """
        if self.cancellation is not None:
            self.cancellation.raise_if_cancelled()
        try:
            return await execute(
                self.policy if retry else SINGLE_ATTEMPT,
                call,
                cancellation=self.cancellation,
                sleep=self._sleep,
            )
        except Exception as exc:
            enriched = enrich_graph_error(exc, operation)
            if enriched is exc:
                raise
            raise enriched from exc

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "OperationPipeline":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


def build_pipeline(
    tenant_id: str,
    client_id: str,
    auth: AuthInput,
    policy: RetryPolicy,
    cancellation: CancellationSignal | None = None,
    *,
    http_timeout: float = 60.0,
    exporter: CertificateExporter | None = None,
) -> tuple[OperationPipeline, TokenCredential]:
    """Resolve the run's credential and wire it into a ready pipeline."""
    credential = resolve_credential(tenant_id, client_id, auth, exporter=exporter)
    client = GraphClient(credential, timeout=http_timeout)
    logger.debug(
        "Pipeline ready (max_retries=%d, base_delay=%.1fs)",
        policy.max_retries, policy.base_delay,
    )
    return OperationPipeline(client, policy, cancellation), credential
