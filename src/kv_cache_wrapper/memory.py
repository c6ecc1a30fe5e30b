"""Store em memória para desenvolvimento e testes."""

import asyncio
import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from .exceptions import CacheKeyError
from .serializer import JSON_FORMAT, SUPPORTED_FORMATS, TEXT_FORMAT, JsonSerializer

logger = logging.getLogger(__name__)


@dataclass
class StoredEntry:
    """Entrada armazenada: texto serializado, expiração absoluta e metadata."""

    value: str
    expires_at: float | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)


class InMemoryStore:
    """Store chave-valor assíncrono baseado em dict.

    Interpreta as opções de escrita:
    - expirationTtl: segundos a partir de agora
    - expiration: instante absoluto em segundos desde a epoch UNIX
    - metadata: mapping guardado junto da entrada

    Entradas expiradas são lidas como ausentes e removidas na leitura.

    Attributes:
        clock: Função que retorna o instante atual (default: time.time)
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._entries: dict[str, StoredEntry] = {}
        self._serializer = JsonSerializer()
        self._lock: asyncio.Lock | None = None

    def _get_lock(self) -> asyncio.Lock:
        # Criado sob demanda: o store pode ser instanciado antes do event loop
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    def _expires_at(self, options: Mapping[str, Any]) -> float | None:
        ttl = options.get("expirationTtl")
        if ttl is not None:
            return self._clock() + float(ttl)
        expiration = options.get("expiration")
        if expiration is not None:
            return float(expiration)
        return None

    async def get(self, key: str, format: str = JSON_FORMAT) -> Any | None:
        """Busca valor do store.

        Raises:
            CacheKeyError: Se a chave for vazia
            ValueError: Se o formato não for suportado
        """
        if not key:
            raise CacheKeyError("Chave não pode ser vazia", key=key)
        if format not in SUPPORTED_FORMATS:
            raise ValueError(f"Formato não suportado: {format}")

        async with self._get_lock():
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.expires_at is not None and entry.expires_at <= self._clock():
                logger.debug("Entrada expirada para chave: %s", key)
                del self._entries[key]
                return None

        if format == TEXT_FORMAT:
            return entry.value
        return self._serializer.deserialize(entry.value)

    async def put(self, key: str, value: str, options: Mapping[str, Any]) -> None:
        """Grava valor serializado.

        Raises:
            CacheKeyError: Se a chave for vazia
        """
        if not key:
            raise CacheKeyError("Chave não pode ser vazia", key=key)

        entry = StoredEntry(
            value=value,
            expires_at=self._expires_at(options),
            metadata=dict(options.get("metadata") or {}),
        )
        async with self._get_lock():
            self._entries[key] = entry
        logger.debug("Entrada gravada para chave: %s", key)

    def get_entry(self, key: str) -> StoredEntry | None:
        """Retorna a entrada crua, sem verificar expiração."""
        return self._entries.get(key)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries
