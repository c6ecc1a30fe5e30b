"""Wrapper cache-aside sobre um store chave-valor assíncrono."""

import inspect
import logging
import time
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any, TypeVar, Union

from .config import CacheConfig
from .exceptions import CacheKeyError
from .key_builder import DefaultKeyBuilder
from .metrics import NoOpMetrics
from .options import CommonOptions, ControllerInput, resolve_options
from .protocols import CacheMetrics, KeyBuilder, Serializer, StoreAdapter
from .serializer import JSON_FORMAT, JsonSerializer

logger = logging.getLogger(__name__)

T = TypeVar("T")

Producer = Union[Callable[[], Union[T, Awaitable[T]]], Awaitable[T], T]
KeySource = Union[str, Callable[..., str], None]


async def _resolve_producer(producer: Producer[T]) -> T:
    """Obtém o valor do producer: chama se for callable, aguarda se for awaitable."""
    value = producer() if callable(producer) else producer
    if inspect.isawaitable(value):
        return await value
    return value


class KVWrapper:
    """Coordenador cache-aside: get -> compute -> decide -> put.

    Uma instância é criada por par (store, opções comuns) e reutilizada em
    várias chamadas. Cada chamada é independente; não há estado mutável
    compartilhado, nem deduplicação de misses concorrentes.

    Attributes:
        store: Store adapter com get/put assíncronos
        common: Opções comuns (debug e opções padrão de escrita)
        serializer: Codificação textual dos valores (default: JsonSerializer)
        metrics: Coletor de métricas (default: NoOpMetrics)
    """

    def __init__(
        self,
        store: StoreAdapter,
        common: CommonOptions | None = None,
        serializer: Serializer | None = None,
        metrics: CacheMetrics | None = None,
        key_builder: KeyBuilder | None = None,
    ) -> None:
        self._store = store
        self._common = common or CommonOptions()
        self._serializer = serializer or JsonSerializer()
        self._metrics = metrics or NoOpMetrics()
        self._key_builder = key_builder or DefaultKeyBuilder(prefix=CacheConfig.DEFAULT_KEY_PREFIX)

    @property
    def store(self) -> StoreAdapter:
        return self._store

    @property
    def common(self) -> CommonOptions:
        return self._common

    async def __call__(self, key: str, producer: Producer[T], controller: ControllerInput = None) -> T:
        return await self.invoke(key, producer, controller)

    async def invoke(self, key: str, producer: Producer[T], controller: ControllerInput = None) -> T:
        """Retorna o valor cacheado ou computa, decide e grava.

        Args:
            key: Chave do cache
            producer: Callable (sync ou async) sem argumentos, ou awaitable em andamento
            controller: None, bool, mapping, CacheDecision ou função do resultado

        Returns:
            Valor do cache (hit) ou valor computado (miss)

        Raises:
            CacheKeyError: Se a chave for vazia
            Exception: Falhas do store, do producer e do controller propagam sem tradução
        """
        if not key:
            raise CacheKeyError("Chave não pode ser vazia", key=key)

        start_time = time.perf_counter()
        try:
            cached = await self._store.get(key, JSON_FORMAT)
        except Exception as e:
            self._metrics.record_error(key, e)
            raise
        latency = time.perf_counter() - start_time

        if cached is not None:
            self._metrics.record_hit(key, latency)
            if self._common.debug:
                logger.info("cache hit: %s", key)
            return cached

        self._metrics.record_miss(key, latency)

        result = await _resolve_producer(producer)
        resolved = await resolve_options(result, controller, self._common)

        if not resolved.cacheable:
            record_skip = getattr(self._metrics, "record_skip", None)
            if record_skip is not None:
                record_skip(key)
            return result

        serialized = self._serializer.serialize(result)
        try:
            await self._store.put(key, serialized, resolved.store_options)
        except Exception as e:
            self._metrics.record_error(key, e)
            raise

        self._metrics.record_write(key, len(serialized.encode("utf-8")))
        if self._common.debug:
            logger.info("cache set: %s", key)
        return result

    def cacheable(
        self, key: KeySource = None, *, controller: ControllerInput = None
    ) -> Callable[[Callable[..., Any]], Callable[..., Awaitable[Any]]]:
        """Decorator que passa as chamadas da função por ``invoke``.

        A função decorada (sync ou async) passa a ser assíncrona.

        Args:
            key: Chave fixa, função que recebe os argumentos da chamada e
                devolve a chave, ou None para gerar com o key builder
            controller: Controller aplicado a todas as chamadas

        Example:
            ```python
            kv = make_kv_wrapper(store, expirationTtl=300)

            @kv.cacheable(key=lambda user_id: f"user:{user_id}")
            async def get_user(user_id: int) -> dict:
                return await db.fetch_user(user_id)
            ```
        """

        def decorator(func: Callable[..., Any]) -> Callable[..., Awaitable[Any]]:
            @wraps(func)
            async def wrapper(*args: Any, **kwargs: Any) -> Any:
                cache_key = self._build_key(key, func, args, kwargs)
                return await self.invoke(cache_key, lambda: func(*args, **kwargs), controller)

            return wrapper

        return decorator

    def _build_key(
        self, key: KeySource, func: Callable[..., Any], args: tuple[Any, ...], kwargs: dict[str, Any]
    ) -> str:
        if key is None:
            return self._key_builder.build_key(func, args, kwargs)
        if callable(key):
            return key(*args, **kwargs)
        return key


def make_kv_wrapper(
    store: StoreAdapter,
    debug: bool | None = None,
    *,
    serializer: Serializer | None = None,
    metrics: CacheMetrics | None = None,
    key_builder: KeyBuilder | None = None,
    **store_options: Any,
) -> KVWrapper:
    """Cria um KVWrapper para o store com opções comuns.

    Args:
        store: Store adapter com get/put assíncronos
        debug: Ativa logs de "cache hit"/"cache set" (default: env KV_CACHE_DEBUG ou False)
        serializer: Serializer customizado (default: JsonSerializer)
        metrics: Coletor de métricas (default: NoOpMetrics)
        key_builder: Construtor de chaves para o decorator (default: DefaultKeyBuilder)
        **store_options: Opções padrão de escrita (ex: expirationTtl=300)

    Returns:
        KVWrapper pronto para uso

    Raises:
        ValueError: Se alguma opção padrão for inválida

    Example:
        ```python
        kv = make_kv_wrapper(InMemoryStore(), debug=True, expirationTtl=60)

        user = await kv("user:1", lambda: fetch_user(1))
        page = await kv(
            "page:home",
            render_home,
            lambda html: {"cacheable": len(html) > 0, "expirationTtl": 3600},
        )
        ```
    """
    resolved_options = CacheConfig.resolve_store_options(store_options)
    CacheConfig.validate_store_options(resolved_options)

    common = CommonOptions(
        debug=CacheConfig.resolve_debug(debug),
        store_options=resolved_options,
    )
    return KVWrapper(
        store=store,
        common=common,
        serializer=serializer,
        metrics=metrics,
        key_builder=key_builder,
    )
