"""
Tests for GraphClient, error enrichment and the OperationPipeline.
HTTP is served by httpx.MockTransport; the credential is a MagicMock.
"""

import json
import time
from unittest.mock import MagicMock

import httpx
import pytest
from azure.core.credentials import AccessToken

from graphtool.exceptions import (
    GraphAPIError,
    GraphTransportError,
    OperationCancelledError,
    RateLimitExceededError,
    RetryExhaustedError,
    ServiceTemporarilyUnavailableError,
)
from graphtool.graph.base import enrich_graph_error, find_graph_error
from graphtool.graph.client import GraphClient, user_path
from graphtool.graph.pipeline import OperationPipeline, build_pipeline
from graphtool.utils.retry import CancellationSignal, RetryPolicy

from conftest import CLIENT_ID, TENANT_ID


def fake_credential(token: str = "test-token") -> MagicMock:
    credential = MagicMock()
    credential.get_token.return_value = AccessToken(token, int(time.time()) + 3600)
    return credential


def odata_error(status: int, code: str, message: str = "error", headers=None) -> httpx.Response:
    return httpx.Response(
        status, json={"error": {"code": code, "message": message}}, headers=headers or {}
    )


def make_client(handler) -> GraphClient:
    return GraphClient(fake_credential(), transport=httpx.MockTransport(handler))


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay, cancellation):
        self.delays.append(delay)


# ── GraphClient ─────────────────────────────────────────────────────────────────


def test_user_path_quotes_mailbox():
    assert user_path("user@example.com", "events") == "/users/user@example.com/events"
    assert user_path("a b@example.com", "mailFolders", "Inbox") == "/users/a%20b@example.com/mailFolders/Inbox"


@pytest.mark.asyncio
async def test_get_sends_bearer_token_and_params():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        return httpx.Response(200, json={"value": [{"id": "1"}]})

    async with make_client(handler) as client:
        data = await client.get(user_path("user@example.com", "events"), params={"$top": 3})

    assert data == {"value": [{"id": "1"}]}
    assert seen["auth"] == "Bearer test-token"
    assert seen["url"].startswith("https://graph.microsoft.com/v1.0/users/user@example.com/events")
    assert "%24top=3" in seen["url"] or "$top=3" in seen["url"]


@pytest.mark.asyncio
async def test_post_sends_json_and_handles_202():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["body"] = json.loads(request.content)
        return httpx.Response(202)

    async with make_client(handler) as client:
        data = await client.post("/users/u@example.com/sendMail", json={"message": {"subject": "hi"}})

    assert data == {}
    assert captured["body"] == {"message": {"subject": "hi"}}


@pytest.mark.asyncio
async def test_odata_error_becomes_graph_api_error():
    def handler(request):
        return odata_error(429, "TooManyRequests", "slow down", headers={"Retry-After": "12"})

    async with make_client(handler) as client:
        with pytest.raises(GraphAPIError) as exc_info:
            await client.get("/users/u@example.com/events")

    err = exc_info.value
    assert err.status_code == 429
    assert err.code == "TooManyRequests"
    assert err.message == "slow down"
    assert err.retry_after == "12"


@pytest.mark.asyncio
async def test_non_json_error_body():
    async with make_client(lambda request: httpx.Response(502, text="<html>bad gateway</html>")) as client:
        with pytest.raises(GraphAPIError) as exc_info:
            await client.get("/users/u@example.com/events")
    assert exc_info.value.status_code == 502
    assert exc_info.value.code == ""


@pytest.mark.asyncio
async def test_transport_error_is_wrapped_with_type_name():
    def handler(request):
        raise httpx.ConnectTimeout("handshake", request=request)

    async with make_client(handler) as client:
        with pytest.raises(GraphTransportError, match="ConnectTimeout") as exc_info:
            await client.get("/users/u@example.com/events")
    assert isinstance(exc_info.value.__cause__, httpx.ConnectTimeout)


# ── Enrichment ──────────────────────────────────────────────────────────────────


class TestEnrichment:
    def test_rate_limit_with_retry_after(self):
        err = GraphAPIError("throttled", 429, code="TooManyRequests", headers={"Retry-After": "30"})
        enriched = enrich_graph_error(err, "listEvents")
        assert isinstance(enriched, RateLimitExceededError)
        assert enriched.__cause__ is err
        assert enriched.retry_after == "30"
        message = str(enriched)
        assert "rate limit exceeded during listEvents" in message
        assert "retry after 30 seconds" in message
        assert "Consider: 1) Reducing request frequency" in message

    def test_activity_limit_without_header(self):
        err = GraphAPIError("limit", 429, code="activityLimitReached")
        enriched = enrich_graph_error(err, "sendEmail")
        assert isinstance(enriched, RateLimitExceededError)
        assert "retry after" not in str(enriched)

    @pytest.mark.parametrize("code", ["ServiceUnavailable", "GatewayTimeout"])
    def test_service_unavailable(self, code):
        err = GraphAPIError("down", 503, code=code)
        enriched = enrich_graph_error(err, "listInbox")
        assert isinstance(enriched, ServiceTemporarilyUnavailableError)
        assert str(enriched) == f"service temporarily unavailable during listInbox (code: {code})"
        assert enriched.__cause__ is err

    def test_other_codes_unchanged(self):
        err = GraphAPIError("denied", 403, code="ErrorAccessDenied")
        assert enrich_graph_error(err, "listEvents") is err

    def test_non_graph_errors_unchanged(self):
        err = ValueError("boom")
        assert enrich_graph_error(err, "listEvents") is err

    def test_graph_error_found_through_retry_exhausted(self):
        last = GraphAPIError("throttled", 429, code="TooManyRequests")
        exhausted = RetryExhaustedError(3, last)
        exhausted.__cause__ = last
        assert find_graph_error(exhausted) is last
        enriched = enrich_graph_error(exhausted, "listEvents")
        assert isinstance(enriched, RateLimitExceededError)
        assert enriched.__cause__ is exhausted


# ── Pipeline ────────────────────────────────────────────────────────────────────


class TestPipeline:
    @pytest.mark.asyncio
    async def test_retries_throttling_then_succeeds(self):
        responses = iter([
            odata_error(429, "TooManyRequests"),
            odata_error(503, "ServiceUnavailable"),
            httpx.Response(200, json={"value": []}),
        ])
        sleep = RecordingSleep()
        pipeline = OperationPipeline(
            make_client(lambda request: next(responses)),
            RetryPolicy(max_retries=3, base_delay=1.0),
            sleep=sleep,
        )
        async with pipeline:
            data = await pipeline.run("listEvents", lambda: pipeline.client.get("/users/u@example.com/events"))
        assert data == {"value": []}
        assert sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_exhausted_throttling_is_enriched(self):
        calls = []

        def handler(request):
            calls.append(request)
            return odata_error(429, "TooManyRequests", headers={"Retry-After": "5"})

        pipeline = OperationPipeline(
            make_client(handler), RetryPolicy(max_retries=2, base_delay=1.0), sleep=RecordingSleep()
        )
        async with pipeline:
            with pytest.raises(RateLimitExceededError) as exc_info:
                await pipeline.run("listInbox", lambda: pipeline.client.get("/users/u@example.com/messages"))
        assert len(calls) == 3
        assert isinstance(exc_info.value.__cause__, RetryExhaustedError)

    @pytest.mark.asyncio
    async def test_single_attempt_calls_are_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ReadTimeout("read", request=request)

        sleep = RecordingSleep()
        pipeline = OperationPipeline(make_client(handler), RetryPolicy(max_retries=3), sleep=sleep)
        async with pipeline:
            with pytest.raises(RetryExhaustedError):
                await pipeline.run(
                    "sendEmail",
                    lambda: pipeline.client.post("/users/u@example.com/sendMail", json={}),
                    retry=False,
                )
        assert len(calls) == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_permanent_error_passes_through(self):
        calls = []

        def handler(request):
            calls.append(request)
            return odata_error(404, "ErrorItemNotFound", "mailbox not found")

        pipeline = OperationPipeline(make_client(handler), RetryPolicy(max_retries=3), sleep=RecordingSleep())
        async with pipeline:
            with pytest.raises(GraphAPIError, match="ErrorItemNotFound"):
                await pipeline.run("listEvents", lambda: pipeline.client.get("/users/u@example.com/events"))
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_transport_timeouts_are_retried(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            if len(attempts) < 3:
                raise httpx.ReadTimeout("read", request=request)
            return httpx.Response(200, json={"id": "evt"})

        sleep = RecordingSleep()
        pipeline = OperationPipeline(make_client(handler), RetryPolicy(max_retries=3, base_delay=2.0), sleep=sleep)
        async with pipeline:
            data = await pipeline.run("createInvite", lambda: pipeline.client.post("/users/u@example.com/events", json={}))
        assert data == {"id": "evt"}
        assert sleep.delays == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_cancelled_signal_short_circuits(self):
        handler = MagicMock(return_value=httpx.Response(200, json={}))
        signal = CancellationSignal()
        signal.cancel()
        pipeline = OperationPipeline(make_client(handler), RetryPolicy(), signal)
        async with pipeline:
            with pytest.raises(OperationCancelledError):
                await pipeline.run("listEvents", lambda: pipeline.client.get("/users/u@example.com/events"))
        handler.assert_not_called()

    @pytest.mark.asyncio
    async def test_token_fetched_per_request(self):
        credential = fake_credential()
        client = GraphClient(credential, transport=httpx.MockTransport(lambda r: httpx.Response(200, json={})))
        async with client:
            await client.get("/a")
            await client.get("/b")
        assert credential.get_token.call_count == 2
        credential.get_token.assert_called_with("https://graph.microsoft.com/.default")


def test_build_pipeline_wires_secret_credential():
    from azure.identity import ClientSecretCredential
    from graphtool.auth.models import ClientSecretAuth

    pipeline, credential = build_pipeline(
        TENANT_ID, CLIENT_ID, ClientSecretAuth("abc"), RetryPolicy(max_retries=1)
    )
    assert isinstance(credential, ClientSecretCredential)
    assert pipeline.policy.max_retries == 1
    assert pipeline.cancellation is None
