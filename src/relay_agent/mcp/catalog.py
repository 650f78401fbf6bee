"""
Tool catalog stores.

The catalog is an external store keyed by tool identifier. Each record carries
a description, a category and a list of parameters
`{key, description, required, type?, enum?, items?}`; this module turns records
into `ToolDescriptor`s. An unreachable store raises `CatalogUnavailable`, which
the server treats as fatal at startup.
"""

import asyncio
import json
import logging
from importlib import resources
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Union

import aiohttp

from ..base.tool import FieldSchema, InputSchema, ToolDescriptor
from ..errors import CatalogUnavailable

logger = logging.getLogger(__name__)


class CatalogStore(Protocol):
    """Source of tool descriptors."""

    async def load(self) -> List[ToolDescriptor]:
        ...


def descriptor_from_record(tool_id: str, record: Dict[str, Any]) -> ToolDescriptor:
    """Convert one store record into a descriptor."""
    properties: Dict[str, FieldSchema] = {}
    required: List[str] = []

    for param in record.get("parameters", []):
        key = param["key"]
        properties[key] = FieldSchema(
            type=param.get("type", "string"),
            description=param.get("description", ""),
            enum=param.get("enum"),
            items=param.get("items"),
        )
        if param.get("required", False):
            required.append(key)

    return ToolDescriptor(
        name=tool_id,
        description=record.get("description", ""),
        category=record.get("category", ""),
        inputSchema=InputSchema(properties=properties, required=tuple(required)),
    )


def descriptors_from_records(records: Dict[str, Any]) -> List[ToolDescriptor]:
    if not isinstance(records, dict):
        raise CatalogUnavailable("Catalog must be an object keyed by tool id")

    descriptors = []
    for tool_id, record in records.items():
        try:
            descriptors.append(descriptor_from_record(tool_id, record))
        except (KeyError, TypeError, ValueError) as e:
            raise CatalogUnavailable(f"Invalid catalog record '{tool_id}': {e}")
    return descriptors


class JsonFileCatalogStore:
    """Catalog read from a JSON file (the packaged catalog by default)."""

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self.path = Path(path) if path else None

    def _read(self) -> str:
        if self.path is None:
            return (
                resources.files("relay_agent")
                .joinpath("data/catalog.json")
                .read_text(encoding="utf-8")
            )
        return self.path.read_text(encoding="utf-8")

    async def load(self) -> List[ToolDescriptor]:
        try:
            records = json.loads(self._read())
        except (OSError, json.JSONDecodeError) as e:
            raise CatalogUnavailable(f"Could not read catalog {self.path or 'package data'}: {e}")

        descriptors = descriptors_from_records(records)
        logger.info(f"Loaded {len(descriptors)} tools from catalog file")
        return descriptors


class HttpCatalogStore:
    """Catalog fetched from an HTTP endpoint returning the record mapping."""

    def __init__(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        timeout: float = 30.0,
    ):
        self.url = url
        self.headers = headers or {}
        self.timeout = timeout

    async def load(self) -> List[ToolDescriptor]:
        try:
            async with aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout), headers=self.headers
            ) as session:
                async with session.get(self.url) as response:
                    if response.status != 200:
                        raise CatalogUnavailable(
                            f"Catalog store returned HTTP {response.status}: {await response.text()}"
                        )
                    records = await response.json(content_type=None)
        except CatalogUnavailable:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, json.JSONDecodeError) as e:
            raise CatalogUnavailable(f"Catalog store {self.url} unreachable: {e}")

        descriptors = descriptors_from_records(records)
        logger.info(f"Loaded {len(descriptors)} tools from {self.url}")
        return descriptors
