"""Shared fixtures and fakes for pipeline tests."""

import json
from types import SimpleNamespace
from typing import Dict, List, Optional, Union
from unittest.mock import AsyncMock

import pytest

from catalog_pipeline.ingest.base import ProductDetail, StockRow, normalize_code
from catalog_pipeline.ingest.cache_store import CacheStore


@pytest.fixture
def cache_store(tmp_path):
    store = CacheStore(tmp_path / "cache.json")
    store.load()
    return store


class FakeStockSession:
    """Stands in for StockSession: canned rows per normalized code."""

    def __init__(self, results: Dict[str, Union[List[StockRow], Exception]], start_error: Optional[Exception] = None):
        self.results = results
        self.start_error = start_error
        self.searched: List[str] = []
        self.entered = 0
        self.closed = 0

    async def __aenter__(self):
        self.entered += 1
        if self.start_error is not None:
            raise self.start_error
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.closed += 1

    async def search(self, code: str) -> List[StockRow]:
        self.searched.append(code)
        result = self.results.get(normalize_code(code), [])
        if isinstance(result, Exception):
            raise result
        return result


class FakeDetailSession:
    """Stands in for DetailSession: canned detail (or None) per normalized code."""

    def __init__(
        self,
        results: Dict[str, Union[ProductDetail, None, Exception]],
        start_error: Optional[Exception] = None,
    ):
        self.results = results
        self.start_error = start_error
        self.fetched: List[str] = []
        self.entered = 0

    async def __aenter__(self):
        self.entered += 1
        if self.start_error is not None:
            raise self.start_error
        return self

    async def __aexit__(self, exc_type, exc, tb):
        pass

    async def fetch(self, code: str) -> Optional[ProductDetail]:
        self.fetched.append(code)
        result = self.results.get(normalize_code(code))
        if isinstance(result, Exception):
            raise result
        return result


def completion_response(content: Optional[str]):
    """Minimal object shaped like a chat completion response."""
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def fake_openai_client(payload=None, error: Optional[Exception] = None):
    """Object exposing chat.completions.create as an AsyncMock."""
    create = AsyncMock()
    if error is not None:
        create.side_effect = error
    elif isinstance(payload, str) or payload is None:
        create.return_value = completion_response(payload)
    else:
        create.return_value = completion_response(json.dumps(payload))
    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))


@pytest.fixture
def full_copy_payload():
    return {
        "seoTitle": "Waterproof Backpack - Corporate Gifts Singapore - Smilie",
        "productTitle": "Summit Waterproof Backpack",
        "shortDescription": "Durable backpack for daily commutes.",
        "longDescription": "A water-resistant backpack suited to commutes and travel.",
        "metaDescription": "Waterproof backpack for staff gifts in Singapore.",
    }
