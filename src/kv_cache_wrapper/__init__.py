"""kv-cache-wrapper: Cache-aside genérico sobre stores chave-valor assíncronos.

Consulta o store pela chave; no miss executa o producer, decide por
chamada se o resultado é cacheável e grava com as opções resolvidas.

Uso básico:
    ```python
    from kv_cache_wrapper import InMemoryStore, make_kv_wrapper

    kv = make_kv_wrapper(InMemoryStore(), debug=True, expirationTtl=300)

    # Producer sync, async ou awaitable em andamento
    user = await kv("user:1", lambda: fetch_user(1))

    # Controller estático: sobrescreve o TTL padrão
    config = await kv("config", load_config, {"expirationTtl": 3600})

    # Controller dinâmico: decide depois de ver o resultado
    data = await kv("feed", fetch_feed, lambda feed: {"cacheable": bool(feed)})
    ```

Com Dapr State Store:
    ```python
    from kv_cache_wrapper import DaprStateBackend, make_kv_wrapper

    async with DaprStateBackend("cache") as store:
        kv = make_kv_wrapper(store, expirationTtl=60)

        @kv.cacheable(key=lambda user_id: f"user:{user_id}")
        async def get_user(user_id: int) -> dict:
            return await db.query(user_id)
    ```
"""

__version__ = "0.1.0"

# Store adapters
from .backend import DaprStateBackend

# Configuração
from .config import CacheConfig

# Exceções
from .exceptions import (
    CacheBackendError,
    CacheConnectionError,
    CacheError,
    CacheKeyError,
    CacheSerializationError,
    CacheTimeoutError,
)

# Geração de chaves
from .key_builder import DefaultKeyBuilder
from .memory import InMemoryStore

# Métricas
from .metrics import CacheStats, InMemoryMetrics, KeyStats, NoOpMetrics, OpenTelemetryMetrics, Outcome

# Resolução de opções
from .options import (
    Absent,
    CacheDecision,
    CommonOptions,
    Dynamic,
    ResolvedOptions,
    Static,
    as_controller,
    merge_store_options,
    resolve_options,
)

# Protocols (para extensibilidade)
from .protocols import CacheMetrics, KeyBuilder, Serializer, StoreAdapter

# Serialização
from .serializer import JsonSerializer

# Wrapper principal
from .wrapper import KVWrapper, make_kv_wrapper

__all__ = [
    # Wrapper principal
    "make_kv_wrapper",
    "KVWrapper",
    # Resolução de opções
    "Absent",
    "CacheDecision",
    "CommonOptions",
    "Dynamic",
    "ResolvedOptions",
    "Static",
    "as_controller",
    "merge_store_options",
    "resolve_options",
    # Store adapters
    "DaprStateBackend",
    "InMemoryStore",
    # Configuração
    "CacheConfig",
    # Serialização
    "JsonSerializer",
    # Geração de chaves
    "DefaultKeyBuilder",
    # Métricas
    "CacheStats",
    "KeyStats",
    "NoOpMetrics",
    "InMemoryMetrics",
    "OpenTelemetryMetrics",
    "Outcome",
    # Exceções
    "CacheError",
    "CacheBackendError",
    "CacheConnectionError",
    "CacheKeyError",
    "CacheSerializationError",
    "CacheTimeoutError",
    # Protocols
    "CacheMetrics",
    "KeyBuilder",
    "Serializer",
    "StoreAdapter",
]
