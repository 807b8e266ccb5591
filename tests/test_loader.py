import json
from pathlib import Path

import httpx
import pytest
import yaml

from openapi_adapter.exceptions import SchemaLoadError
from openapi_adapter.loader import fetch_document, load_document, normalize_document, validate_document

FIXTURES = Path(__file__).parent / "fixtures"


def _minimal(**extra) -> dict:
    document = {
        "openapi": "3.0.0",
        "info": {"title": "Test", "version": "1.0.0"},
        "servers": [{"url": "https://api.example.com"}],
        "paths": {"/ping": {"get": {"operationId": "ping", "responses": {"200": {"description": "ok"}}}}},
    }
    document.update(extra)
    return document


class TestLoadDocument:
    def test_yaml_file(self):
        document = load_document(FIXTURES / "petstore.yaml")
        assert document["info"]["title"] == "Swagger Petstore"
        assert "/pets" in document["paths"]

    def test_json_file(self, tmp_path):
        path = tmp_path / "api.json"
        path.write_text(json.dumps(_minimal()))
        assert load_document(path)["paths"]["/ping"]["get"]["operationId"] == "ping"

    def test_missing_file(self, tmp_path):
        with pytest.raises(SchemaLoadError, match="Schema file not found"):
            load_document(tmp_path / "absent.yaml")

    def test_unsupported_extension(self, tmp_path):
        path = tmp_path / "api.txt"
        path.write_text("openapi: 3.0.0")
        with pytest.raises(SchemaLoadError, match="Unsupported schema file format: .txt"):
            load_document(path)

    def test_parse_error(self, tmp_path):
        path = tmp_path / "api.json"
        path.write_text("{not json")
        with pytest.raises(SchemaLoadError, match="Failed to parse schema file"):
            load_document(path)

    def test_invalid_document_lists_errors(self, tmp_path):
        path = tmp_path / "api.yaml"
        path.write_text(yaml.safe_dump({"openapi": "3.0.0", "paths": {}}))
        with pytest.raises(SchemaLoadError) as exc_info:
            load_document(path)
        assert "Missing required field: info" in str(exc_info.value)

    def test_swagger_2_rejected(self, tmp_path):
        path = tmp_path / "api.yaml"
        path.write_text(
            yaml.safe_dump({"swagger": "2.0", "info": {"title": "Old", "version": "1"}, "paths": {}})
        )
        with pytest.raises(SchemaLoadError, match="Swagger 2.0 is not supported"):
            load_document(path)

    def test_non_mapping_root(self, tmp_path):
        path = tmp_path / "api.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(SchemaLoadError, match="Invalid OpenAPI schema"):
            load_document(path)


class TestFetchDocument:
    async def test_fetches_yaml(self, respx_mock):
        respx_mock.get("https://specs.example.com/api.yaml").mock(
            return_value=httpx.Response(200, text=yaml.safe_dump(_minimal()))
        )
        document = await fetch_document("https://specs.example.com/api.yaml")
        assert document["paths"]["/ping"]["get"]["operationId"] == "ping"

    async def test_fetches_json(self, respx_mock):
        respx_mock.get("https://specs.example.com/api.json").mock(return_value=httpx.Response(200, json=_minimal()))
        document = await fetch_document("https://specs.example.com/api.json")
        assert document["info"]["title"] == "Test"

    async def test_http_status_failure(self, respx_mock):
        respx_mock.get("https://specs.example.com/missing.yaml").mock(return_value=httpx.Response(404))
        with pytest.raises(SchemaLoadError, match="404"):
            await fetch_document("https://specs.example.com/missing.yaml")

    async def test_transport_failure(self, respx_mock):
        respx_mock.get("https://specs.example.com/api.yaml").mock(side_effect=httpx.ConnectError("refused"))
        with pytest.raises(SchemaLoadError, match="Failed to fetch OpenAPI schema"):
            await fetch_document("https://specs.example.com/api.yaml")


class TestValidateDocument:
    def test_valid(self):
        result = validate_document(_minimal())
        assert result.valid
        assert result.errors == []
        assert result.warnings == []

    def test_missing_fields(self):
        result = validate_document({"info": {"description": "No title or version"}})
        assert not result.valid
        assert "Missing required field: openapi or swagger version" in result.errors
        assert "Missing required field: info.title" in result.errors
        assert "Missing required field: info.version" in result.errors
        assert "Missing required field: paths" in result.errors

    def test_unsupported_version(self):
        result = validate_document(_minimal(openapi="4.0.0"))
        assert "Unsupported OpenAPI version: 4.0.0. Only OpenAPI 3.x is supported" in result.errors

    def test_paths_must_be_object(self):
        assert "Invalid paths field: must be an object" in validate_document(_minimal(paths=[])).errors

    def test_server_warnings_and_errors(self):
        no_servers = _minimal()
        del no_servers["servers"]
        assert "No servers defined - you must provide a base URL" in validate_document(no_servers).warnings
        assert validate_document(_minimal(servers=[])).warnings == [
            "Empty servers array - no base URL will be available"
        ]
        assert "Missing server URL at index 1" in validate_document(
            _minimal(servers=[{"url": "https://a"}, {"description": "no url"}])
        ).errors
        assert "Invalid servers field: must be an array" in validate_document(_minimal(servers={})).errors

    def test_empty_paths_warns(self):
        result = validate_document(_minimal(paths={}))
        assert result.valid
        assert "No paths defined in schema" in result.warnings


class TestNormalizeDocument:
    def test_fills_missing_sections(self):
        document = normalize_document({"openapi": "3.0.0", "paths": None})
        assert document["paths"] == {}
        assert document["components"] == {}

    def test_fills_operation_ids_and_responses(self):
        document = normalize_document({"paths": {"/users/{id}": {"get": {}, "delete": None, "summary": "x"}}})
        path_item = document["paths"]["/users/{id}"]
        assert path_item["get"] == {
            "operationId": "get__users__id_",
            "responses": {"200": {"description": "Success"}},
        }
        assert path_item["delete"]["operationId"] == "delete__users__id_"
        assert path_item["summary"] == "x"

    def test_existing_values_kept(self):
        document = normalize_document(_minimal())
        assert document["paths"]["/ping"]["get"] == {
            "operationId": "ping",
            "responses": {"200": {"description": "ok"}},
        }
