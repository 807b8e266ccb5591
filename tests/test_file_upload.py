from pathlib import Path

import httpx
import pytest

from openapi_adapter.catalog import OperationCatalog
from openapi_adapter.exceptions import FileNotFound, InvalidFilePathType, InvalidParameterType, NotAFile
from openapi_adapter.invoker import OperationInvoker
from openapi_adapter.loader import load_document

FIXTURES = Path(__file__).parent / "fixtures"
BASE_URL = "https://upload.example.com"

CREATIVES_API = {
    "openapi": "3.0.0",
    "info": {"title": "Creatives API", "version": "1.0.0"},
    "servers": [{"url": BASE_URL}],
    "paths": {
        "/creatives": {
            "post": {
                "operationId": "createCreative",
                "requestBody": {
                    "required": True,
                    "content": {
                        "multipart/form-data": {
                            "schema": {"$ref": "#/components/schemas/CreateCreativeMultipartRequest"}
                        }
                    },
                },
            }
        },
        "/batch": {
            "post": {
                "operationId": "uploadBatch",
                "requestBody": {
                    "content": {
                        "multipart/form-data": {
                            "schema": {
                                "type": "object",
                                "properties": {
                                    "files": {"type": "array", "items": {"type": "string", "format": "binary"}}
                                },
                            }
                        }
                    }
                },
            }
        },
    },
    "components": {
        "schemas": {
            "Binary": {"type": "string", "format": "binary"},
            "CreateCreativeMultipartRequest": {
                "type": "object",
                "properties": {
                    "creativeRequest": {"type": "string", "description": "JSON metadata"},
                    "creativeFiles": {"type": "array", "items": {"$ref": "#/components/schemas/Binary"}},
                },
            },
        }
    },
}


class CapturedRequest:
    """Reads the multipart body while the upload handles are still open."""

    def __init__(self) -> None:
        self.body = b""
        self.content_type = ""

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.body = request.read()
        self.content_type = request.headers["Content-Type"]
        return httpx.Response(200, json={"uploaded": True})


@pytest.fixture
def petstore() -> OperationInvoker:
    return OperationInvoker.create(
        OperationCatalog.build(load_document(FIXTURES / "petstore.yaml")), base_url=BASE_URL
    )


@pytest.fixture
def creatives() -> OperationInvoker:
    return OperationInvoker.create(OperationCatalog.build(CREATIVES_API))


@pytest.fixture
def photo(tmp_path: Path) -> Path:
    path = tmp_path / "cat.jpg"
    path.write_bytes(b"\xff\xd8fake-jpeg")
    return path


class TestMultipartUpload:
    async def test_file_and_metadata_fields(self, petstore, photo, respx_mock):
        captured = CapturedRequest()
        respx_mock.post(f"{BASE_URL}/pets/7/photo").mock(side_effect=captured)

        result = await petstore.invoke(
            "post__pets__petId__photo", {"petId": 7, "body": {"photo": str(photo), "caption": "Cute"}}
        )

        assert result["data"] == {"uploaded": True}
        assert captured.content_type.startswith("multipart/form-data; boundary=")
        assert b'name="photo"; filename="cat.jpg"' in captured.body
        assert b"Content-Type: image/jpeg" in captured.body
        assert b"\xff\xd8fake-jpeg" in captured.body
        assert b'name="caption"\r\n\r\nCute' in captured.body

    async def test_body_given_as_json_string(self, petstore, photo, respx_mock):
        captured = CapturedRequest()
        respx_mock.post(f"{BASE_URL}/pets/7/photo").mock(side_effect=captured)

        await petstore.invoke("post__pets__petId__photo", {"petId": 7, "body": f'{{"photo": "{photo}"}}'})

        assert b'filename="cat.jpg"' in captured.body

    async def test_metadata_only_is_still_multipart(self, petstore, respx_mock):
        captured = CapturedRequest()
        respx_mock.post(f"{BASE_URL}/pets/7/photo").mock(side_effect=captured)

        await petstore.invoke("post__pets__petId__photo", {"petId": 7, "body": {"caption": "No photo yet"}})

        assert captured.content_type.startswith("multipart/form-data")
        assert b"No photo yet" in captured.body
        assert b"filename=" not in captured.body

    async def test_empty_form_still_sends_multipart(self, petstore, respx_mock):
        captured = CapturedRequest()
        respx_mock.post(f"{BASE_URL}/pets/7/photo").mock(side_effect=captured)

        await petstore.invoke("post__pets__petId__photo", {"petId": 7, "body": {"caption": None}})

        assert captured.content_type.startswith("multipart/form-data; boundary=")
        boundary = captured.content_type.split("boundary=", 1)[1]
        assert captured.body == f"--{boundary}--\r\n".encode()

    async def test_default_json_header_does_not_leak(self, photo, respx_mock):
        invoker = OperationInvoker.create(
            OperationCatalog.build(load_document(FIXTURES / "petstore.yaml")),
            base_url=BASE_URL,
            headers={"Content-Type": "application/json", "X-Api-Key": "k"},
        )
        captured = CapturedRequest()
        route = respx_mock.post(f"{BASE_URL}/pets/7/photo").mock(side_effect=captured)

        await invoker.invoke("post__pets__petId__photo", {"petId": 7, "body": {"photo": str(photo)}})

        assert captured.content_type.startswith("multipart/form-data; boundary=")
        assert route.calls.last.request.headers["X-Api-Key"] == "k"

    async def test_multiple_files_in_one_field(self, creatives, tmp_path, respx_mock):
        first = tmp_path / "a.png"
        second = tmp_path / "b.pdf"
        first.write_bytes(b"png-bytes")
        second.write_bytes(b"pdf-bytes")
        captured = CapturedRequest()
        respx_mock.post(f"{BASE_URL}/batch").mock(side_effect=captured)

        await creatives.invoke("uploadBatch", {"body": {"files": [str(first), str(second)]}})

        assert captured.body.count(b'name="files"') == 2
        assert b"Content-Type: image/png" in captured.body
        assert b"Content-Type: application/pdf" in captured.body

    async def test_referenced_schema_and_json_metadata(self, creatives, photo, respx_mock):
        captured = CapturedRequest()
        respx_mock.post(f"{BASE_URL}/creatives").mock(side_effect=captured)

        await creatives.invoke(
            "createCreative",
            {"body": {"creativeRequest": {"name": "Spring ad"}, "creativeFiles": [str(photo)]}},
        )

        assert b'name="creativeRequest"\r\n\r\n{"name": "Spring ad"}' in captured.body
        assert b'name="creativeFiles"; filename="cat.jpg"' in captured.body

    async def test_file_handles_are_closed(self, petstore, photo, respx_mock, monkeypatch):
        opened = []
        original_open = Path.open

        def tracking_open(self, *args, **kwargs):
            handle = original_open(self, *args, **kwargs)
            opened.append(handle)
            return handle

        monkeypatch.setattr(Path, "open", tracking_open)
        respx_mock.post(f"{BASE_URL}/pets/7/photo").mock(side_effect=CapturedRequest())

        await petstore.invoke("post__pets__petId__photo", {"petId": 7, "body": {"photo": str(photo)}})

        assert opened
        assert all(handle.closed for handle in opened)


class TestUploadErrors:
    async def test_missing_file(self, petstore):
        with pytest.raises(FileNotFound) as exc_info:
            await petstore.invoke(
                "post__pets__petId__photo", {"petId": 7, "body": {"photo": "/tmp/doesnotexist.jpg"}}
            )

        assert "/tmp/doesnotexist.jpg" in str(exc_info.value)
        assert exc_info.value.field == "photo"

    async def test_directory_is_rejected(self, petstore, tmp_path):
        with pytest.raises(NotAFile):
            await petstore.invoke("post__pets__petId__photo", {"petId": 7, "body": {"photo": str(tmp_path)}})

    async def test_non_string_path(self, petstore):
        with pytest.raises(InvalidFilePathType):
            await petstore.invoke("post__pets__petId__photo", {"petId": 7, "body": {"photo": 42}})

    async def test_non_string_list_entry(self, creatives, photo):
        with pytest.raises(InvalidFilePathType):
            await creatives.invoke("uploadBatch", {"body": {"files": [str(photo), None]}})

    async def test_body_must_be_an_object(self, petstore):
        with pytest.raises(InvalidParameterType):
            await petstore.invoke("post__pets__petId__photo", {"petId": 7, "body": "not json"})
