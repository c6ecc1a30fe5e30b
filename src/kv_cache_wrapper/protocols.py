"""Protocols para extensibilidade da biblioteca.

Define interfaces que permitem implementações customizadas de:
- StoreAdapter: Store chave-valor assíncrono (get/put)
- KeyBuilder: Geração de chaves de cache
- Serializer: Codificação textual dos valores
- CacheMetrics: Coleta de métricas
"""

from collections.abc import Callable, Mapping
from typing import Any, Protocol


class StoreAdapter(Protocol):
    """Protocol para stores chave-valor usados pelo wrapper.

    O wrapper trata o store como um serviço opaco: não interpreta as
    opções de escrita, apenas as repassa.

    Example:
        ```python
        class RedisStore:
            async def get(self, key: str, format: str = "json") -> Any | None:
                raw = await redis.get(key)
                if raw is None:
                    return None
                return json.loads(raw) if format == "json" else raw

            async def put(self, key: str, value: str, options: Mapping[str, Any]) -> None:
                await redis.set(key, value, ex=options.get("expirationTtl"))
        ```
    """

    async def get(self, key: str, format: str = "json") -> Any | None:
        """Busca valor do store.

        Args:
            key: Chave do cache
            format: Formato de leitura ("json" deserializa, "text" retorna o texto cru)

        Returns:
            Valor armazenado ou None se ausente

        Raises:
            CacheError: Se a leitura falhar
        """
        ...

    async def put(self, key: str, value: str, options: Mapping[str, Any]) -> None:
        """Grava valor serializado no store.

        Args:
            key: Chave do cache
            value: Valor já serializado em texto
            options: Parâmetros de escrita específicos do store (ex: expirationTtl)

        Raises:
            CacheError: Se a escrita falhar
        """
        ...


class KeyBuilder(Protocol):
    """Protocol para construtores de chaves de cache.

    Example:
        ```python
        class MyKeyBuilder:
            def build_key(self, func, args, kwargs) -> str:
                return f"my-prefix:{func.__name__}:{hash(args)}"
        ```
    """

    def build_key(
        self,
        func: Callable[..., Any],
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
    ) -> str:
        """Constrói chave de cache.

        Args:
            func: Função decorada
            args: Argumentos posicionais
            kwargs: Argumentos nomeados

        Returns:
            Chave de cache como string
        """
        ...


class Serializer(Protocol):
    """Protocol para codificação textual dos valores cacheados."""

    def serialize(self, data: Any) -> str:
        """Serializa dados Python para texto."""
        ...

    def deserialize(self, data: str) -> Any:
        """Deserializa texto para dados Python."""
        ...


class CacheMetrics(Protocol):
    """Protocol para coleta de métricas de cache.

    Example:
        ```python
        class PrometheusMetrics:
            def record_hit(self, key: str, latency: float) -> None:
                cache_hits_total.labels(key=key).inc()
                cache_latency.labels(operation="hit").observe(latency)
        ```
    """

    def record_hit(self, key: str, latency: float) -> None:
        """Registra cache hit.

        Args:
            key: Chave do cache
            latency: Latência da leitura em segundos
        """
        ...

    def record_miss(self, key: str, latency: float) -> None:
        """Registra cache miss.

        Args:
            key: Chave do cache
            latency: Latência da leitura em segundos
        """
        ...

    def record_write(self, key: str, size: int) -> None:
        """Registra escrita no cache.

        Args:
            key: Chave do cache
            size: Tamanho do valor serializado em bytes
        """
        ...

    def record_skip(self, key: str) -> None:
        """Registra resultado não gravado por decisão do controller.

        Opcional: coletores sem este método continuam aceitos e o wrapper
        apenas deixa de contar os resultados recusados.

        Args:
            key: Chave do cache
        """
        ...

    def record_error(self, key: str, error: Exception) -> None:
        """Registra erro do store.

        Args:
            key: Chave do cache
            error: Exceção que ocorreu
        """
        ...
