"""Exceções do kv-cache-wrapper."""


class CacheError(Exception):
    """Erro base para operações de cache."""

    def __init__(self, message: str, key: str | None = None) -> None:
        self.key = key
        super().__init__(message)


class CacheConnectionError(CacheError):
    """Erro de conexão com o store (ex: sidecar Dapr indisponível)."""

    pass


class CacheTimeoutError(CacheError):
    """Operação no store excedeu o timeout."""

    pass


class CacheBackendError(CacheError):
    """Resposta inesperada do store."""

    def __init__(self, message: str, key: str | None = None, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message, key=key)


class CacheSerializationError(CacheError):
    """Erro de serialização/deserialização de dados."""

    pass


class CacheKeyError(CacheError):
    """Erro relacionado à chave de cache (vazia, inválida, etc.)."""

    pass
