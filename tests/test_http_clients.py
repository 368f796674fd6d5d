"""Tests for the outbound httpx clients: AI service, object store, identity provider."""

from __future__ import annotations

import json
import uuid
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from src.api.auth import IdentityProvider
from src.errors import DownloadFailed, ExternalServiceFailed, Unauthorized
from src.llm.client import AIDocumentClient
from src.storage.gateway import ObjectStoreGateway


@pytest.fixture(autouse=True)
def mock_emit():
    with patch("src.llm.client.emit", new_callable=AsyncMock) as m:
        yield m


def _ai(handler) -> AIDocumentClient:
    return AIDocumentClient(
        base_url="https://ai.test/v1", api_key="k", model="gpt-4o-mini", transport=httpx.MockTransport(handler)
    )


class TestAIDocumentClient:
    @pytest.mark.asyncio()
    async def test_complete_structured_sends_schema(self, mock_emit) -> None:
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            seen["auth"] = request.headers["Authorization"]
            return httpx.Response(200, json={"choices": [{"message": {"content": '{"confidence": 1}'}}]})

        content = await _ai(handler).complete_structured("file-1", "Extract", "esg_extraction", {"type": "object"})

        assert content == '{"confidence": 1}'
        assert seen["auth"] == "Bearer k"
        body = seen["body"]
        assert body["model"] == "gpt-4o-mini"
        assert body["response_format"]["json_schema"]["name"] == "esg_extraction"
        assert body["messages"][0]["content"][1] == {"type": "file", "file": {"file_id": "file-1"}}
        assert [c.args[0].event_type.value for c in mock_emit.call_args_list] == ["ai.request", "ai.response"]

    @pytest.mark.asyncio()
    async def test_http_error_is_retryable(self) -> None:
        client = _ai(lambda request: httpx.Response(502))
        with pytest.raises(ExternalServiceFailed) as exc_info:
            await client.complete_structured("file-1", "Extract", "s", {})
        assert exc_info.value.retryable is True

    @pytest.mark.asyncio()
    async def test_timeout(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(ExternalServiceFailed, match="timed out"):
            await _ai(handler).complete_structured("file-1", "Extract", "s", {})

    @pytest.mark.asyncio()
    async def test_upload_without_id(self) -> None:
        client = _ai(lambda request: httpx.Response(200, json={}))
        with pytest.raises(ExternalServiceFailed):
            await client.upload_file("a.pdf", b"x", "application/pdf")

    @pytest.mark.asyncio()
    async def test_scoped_file_deleted_after_error(self) -> None:
        deleted: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "DELETE":
                deleted.append(request.url.path)
                return httpx.Response(200)
            return httpx.Response(200, json={"id": "file-9"})

        client = _ai(handler)
        with pytest.raises(RuntimeError):
            async with client.uploaded_file("a.pdf", b"x", "application/pdf") as remote_id:
                assert remote_id == "file-9"
                raise RuntimeError("boom")
        assert deleted == ["/v1/files/file-9"]

    @pytest.mark.asyncio()
    async def test_cleanup_failure_does_not_mask_result(self, mock_emit) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "DELETE":
                return httpx.Response(500)
            return httpx.Response(200, json={"id": "file-9"})

        async with _ai(handler).uploaded_file("a.pdf", b"x", "application/pdf") as remote_id:
            result = remote_id

        assert result == "file-9"
        assert mock_emit.call_args.args[0].event_type.value == "ai.file_cleanup_failed"


def _store(handler) -> ObjectStoreGateway:
    return ObjectStoreGateway(
        base_url="https://store.test/storage/v1", service_key="svc", bucket="documents",
        transport=httpx.MockTransport(handler),
    )


class TestObjectStoreGateway:
    @pytest.mark.asyncio()
    async def test_upload_never_upserts(self) -> None:
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["upsert"] = request.headers["x-upsert"]
            seen["type"] = request.headers["Content-Type"]
            return httpx.Response(200, json={"Key": "documents/c/a.pdf"})

        await _store(handler).upload("c/a.pdf", b"%PDF", "application/pdf")
        assert seen == {"path": "/storage/v1/object/documents/c/a.pdf", "upsert": "false", "type": "application/pdf"}

    @pytest.mark.asyncio()
    async def test_download(self) -> None:
        gateway = _store(lambda request: httpx.Response(200, content=b"%PDF-1.7"))
        assert await gateway.download("c/a.pdf") == b"%PDF-1.7"

    @pytest.mark.asyncio()
    async def test_download_http_error(self) -> None:
        gateway = _store(lambda request: httpx.Response(404))
        with pytest.raises(DownloadFailed, match="HTTP 404") as exc_info:
            await gateway.download("c/missing.pdf")
        assert exc_info.value.retryable is True

    @pytest.mark.asyncio()
    async def test_download_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(DownloadFailed):
            await _store(handler).download("c/a.pdf")

    @pytest.mark.asyncio()
    async def test_remove_sends_prefixes(self) -> None:
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=[])

        await _store(handler).remove(["c/a.pdf"])
        assert seen == {"method": "DELETE", "body": {"prefixes": ["c/a.pdf"]}}

    @pytest.mark.asyncio()
    async def test_signed_url_made_absolute(self) -> None:
        gateway = _store(lambda request: httpx.Response(200, json={"signedURL": "/object/sign/documents/c/a.pdf?token=t"}))
        url = await gateway.create_signed_url("c/a.pdf", 60)
        assert url == "https://store.test/storage/v1/object/sign/documents/c/a.pdf?token=t"


def _idp(handler) -> IdentityProvider:
    return IdentityProvider(base_url="https://auth.test/auth/v1", api_key="anon", transport=httpx.MockTransport(handler))


class TestIdentityProvider:
    @pytest.mark.asyncio()
    async def test_resolves_tenant(self) -> None:
        user_id, company_id = uuid.uuid4(), uuid.uuid4()

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.headers["Authorization"] == "Bearer tok"
            return httpx.Response(200, json={"id": str(user_id), "app_metadata": {"company_id": str(company_id)}})

        identity = await _idp(handler).resolve("tok")
        assert identity.user_id == user_id
        assert identity.company_id == company_id

    @pytest.mark.asyncio()
    async def test_rejected_token(self) -> None:
        with pytest.raises(Unauthorized):
            await _idp(lambda request: httpx.Response(401)).resolve("bad")

    @pytest.mark.asyncio()
    async def test_user_without_company(self) -> None:
        provider = _idp(lambda request: httpx.Response(200, json={"id": str(uuid.uuid4()), "app_metadata": {}}))
        with pytest.raises(Unauthorized, match="company"):
            await provider.resolve("tok")
