"""
Unit tests for the tool catalog stores.
"""

import json

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from relay_agent.errors import CatalogUnavailable
from relay_agent.mcp.catalog import (
    HttpCatalogStore,
    JsonFileCatalogStore,
    descriptor_from_record,
    descriptors_from_records,
)

RECORDS = {
    "list_issues": {
        "description": "List issues in a repository.",
        "category": "Issues",
        "parameters": [
            {"key": "owner", "description": "Owner", "required": True},
            {"key": "repo", "description": "Repository", "required": True},
            {
                "key": "state",
                "description": "State",
                "required": False,
                "enum": ["open", "closed", "all"],
            },
        ],
    }
}


def test_descriptor_from_record():
    descriptor = descriptor_from_record("list_issues", RECORDS["list_issues"])

    assert descriptor.name == "list_issues"
    assert descriptor.category == "Issues"
    assert descriptor.required_fields == ["owner", "repo"]
    assert descriptor.optional_fields == ["state"]
    assert descriptor.field_schema("state").enum == ["open", "closed", "all"]
    assert descriptor.field_schema("owner").type == "string"


def test_invalid_records_raise():
    with pytest.raises(CatalogUnavailable):
        descriptors_from_records(["not", "a", "mapping"])

    with pytest.raises(CatalogUnavailable):
        descriptors_from_records({"broken": {"parameters": [{"description": "no key"}]}})


@pytest.mark.asyncio
async def test_packaged_catalog_loads():
    descriptors = await JsonFileCatalogStore().load()
    by_name = {d.name: d for d in descriptors}

    assert "create_issue" in by_name
    assert "github_token" in by_name
    assert by_name["create_issue"].required_fields == ["owner", "repo", "title"]


@pytest.mark.asyncio
async def test_file_catalog(tmp_path):
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps(RECORDS))

    descriptors = await JsonFileCatalogStore(path).load()

    assert [d.name for d in descriptors] == ["list_issues"]


@pytest.mark.asyncio
async def test_missing_file_is_unavailable(tmp_path):
    with pytest.raises(CatalogUnavailable):
        await JsonFileCatalogStore(tmp_path / "missing.json").load()


@pytest_asyncio.fixture
async def catalog_server():
    async def records(request):
        return web.json_response(RECORDS)

    async def broken(request):
        return web.Response(status=503, text="maintenance")

    app = web.Application()
    app.router.add_get("/tools", records)
    app.router.add_get("/broken", broken)
    server = TestServer(app)
    await server.start_server()
    yield server
    await server.close()


@pytest.mark.asyncio
async def test_http_catalog(catalog_server):
    store = HttpCatalogStore(str(catalog_server.make_url("/tools")))

    descriptors = await store.load()

    assert descriptors[0].name == "list_issues"


@pytest.mark.asyncio
async def test_http_catalog_error_status(catalog_server):
    store = HttpCatalogStore(str(catalog_server.make_url("/broken")))

    with pytest.raises(CatalogUnavailable) as exc_info:
        await store.load()

    assert "503" in str(exc_info.value)


@pytest.mark.asyncio
async def test_http_catalog_unreachable():
    store = HttpCatalogStore("http://127.0.0.1:1/tools", timeout=2)

    with pytest.raises(CatalogUnavailable):
        await store.load()
