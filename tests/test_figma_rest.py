"""Tests for the REST export source against a mocked HTTP transport."""

import asyncio

import httpx
import pytest

from promocards.errors import BatchSetupError, CardTimeout, RemoteUnavailable, TemplateNotFound
from promocards.models import CardRequest, TemplateConfig
from promocards.sources import FigmaRestSource, create_source

from .conftest import make_png

EXPORT_URL = "https://figma-exports.example.com/render/abc.png"
TEMPLATE = TemplateConfig(name="default", remote_ref="1:14")
REQUEST = CardRequest("Summer Sale", "50% off all items!")


def _source(handler, **kwargs) -> FigmaRestSource:
    return FigmaRestSource(
        token="tok",
        file_key="FILEKEY",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def _fetch(source: FigmaRestSource, template=TEMPLATE):
    async def run():
        async with source.session() as session:
            return await session.fetch_base_image(template, REQUEST)
    return asyncio.run(run())


class TestFetchBaseImage:
    def test_exports_and_downloads(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            if request.url.path == "/v1/images/FILEKEY":
                return httpx.Response(200, json={"err": None, "images": {"1:14": EXPORT_URL}})
            if str(request.url) == EXPORT_URL:
                return httpx.Response(200, content=make_png(640, 480))
            return httpx.Response(404)

        image = _fetch(_source(handler))

        assert image.size == (640, 480)
        export_call, download_call = seen
        assert export_call.headers["X-Figma-Token"] == "tok"
        assert export_call.url.params["ids"] == "1:14"
        assert export_call.url.params["format"] == "png"
        assert export_call.url.params["scale"] == "2"
        assert "X-Figma-Token" not in download_call.headers

    def test_missing_image_url_is_template_not_found(self):
        def handler(request):
            return httpx.Response(200, json={"err": None, "images": {"1:14": None}})

        with pytest.raises(TemplateNotFound):
            _fetch(_source(handler))

    def test_404_is_template_not_found(self):
        with pytest.raises(TemplateNotFound):
            _fetch(_source(lambda request: httpx.Response(404, text="Not found")))

    def test_auth_failure_is_remote_unavailable(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(403, json={"status": 403, "err": "Invalid token"})

        with pytest.raises(RemoteUnavailable) as info:
            _fetch(_source(handler, retry_attempts=3))
        assert not info.value.transient
        assert len(calls) == 1

    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(CardTimeout) as info:
            _fetch(_source(handler))
        assert info.value.kind == "Timeout"

    def test_retries_server_errors(self):
        responses = iter([
            httpx.Response(503, text="busy"),
            httpx.Response(200, json={"images": {"1:14": EXPORT_URL}}),
            httpx.Response(200, content=make_png(10, 10)),
        ])

        image = _fetch(_source(lambda request: next(responses), retry_attempts=2))
        assert image.size == (10, 10)

    def test_connection_error_after_retries(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(RemoteUnavailable) as info:
            _fetch(_source(handler, retry_attempts=1))
        assert info.value.transient


class TestSetup:
    def test_missing_token(self):
        source = FigmaRestSource(token=None, file_key="FILEKEY")
        with pytest.raises(BatchSetupError):
            asyncio.run(source.open_session())

    def test_create_source_from_settings(self, test_settings):
        source = create_source(test_settings)
        assert isinstance(source, FigmaRestSource)
        assert source.token == "figma-test-token"
        assert source.scale == 2


class TestListComponents:
    def test_walks_document(self):
        document = {
            "document": {
                "children": [
                    {
                        "name": "Page 1",
                        "type": "CANVAS",
                        "children": [
                            {"id": "1:14", "name": "BaseCard", "type": "COMPONENT"},
                            {
                                "id": "2:1",
                                "name": "Frame",
                                "type": "FRAME",
                                "children": [
                                    {"id": "2:5", "name": "Buttons", "type": "COMPONENT_SET"},
                                    {"id": "2:6", "name": "Label", "type": "TEXT"},
                                ],
                            },
                        ],
                    }
                ]
            }
        }

        def handler(request):
            assert request.url.path == "/v1/files/FILEKEY"
            return httpx.Response(200, json=document)

        async def run():
            async with _source(handler).session() as session:
                return await session.list_components()

        components = asyncio.run(run())
        assert components == [
            {"id": "1:14", "name": "BaseCard", "type": "COMPONENT", "path": "Page 1"},
            {"id": "2:5", "name": "Buttons", "type": "COMPONENT_SET", "path": "Page 1/Frame"},
        ]
