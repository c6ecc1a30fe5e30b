"""Configuração de fixtures para testes."""

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest


@pytest.fixture
def sample_data() -> dict:
    """Dados de exemplo para testes."""
    return {"user_id": 123, "name": "Test User", "active": True}


@pytest.fixture
def miss_store() -> MagicMock:
    """Store mockado que sempre responde ausência."""
    store = MagicMock()
    store.get = AsyncMock(return_value=None)
    store.put = AsyncMock(return_value=None)
    return store


@pytest.fixture
def hit_store() -> Any:
    """Fábrica de store mockado que responde um valor fixo."""

    def factory(value: Any) -> MagicMock:
        store = MagicMock()
        store.get = AsyncMock(return_value=value)
        store.put = AsyncMock(return_value=None)
        return store

    return factory
