"""Construtor de chaves de cache determinísticas."""

import hashlib
import inspect
import json
from collections.abc import Callable
from typing import Any

from .exceptions import CacheSerializationError
from .serializer import normalize_for_serialization


def _key_default(obj: Any) -> Any:
    try:
        return normalize_for_serialization(obj)
    except CacheSerializationError:
        return str(obj)


class DefaultKeyBuilder:
    """Construtor de chaves padrão usando SHA256.

    Gera chaves no formato ``{prefix}:{module}.{qualname}:{hash_args}``.
    O hash cobre os argumentos normalizados, sem 'self' e 'cls' de métodos,
    então instâncias diferentes compartilham a mesma entrada de cache.

    Attributes:
        prefix: Prefixo para todas as chaves geradas
    """

    def __init__(self, prefix: str = "cache") -> None:
        """Inicializa o key builder.

        Raises:
            ValueError: Se prefix for vazio
        """
        if not prefix:
            raise ValueError("Prefix não pode ser vazio")
        self._prefix = prefix

    @property
    def prefix(self) -> str:
        """Prefixo das chaves."""
        return self._prefix

    def build_key(self, func: Callable[..., Any], args: tuple[Any, ...], kwargs: dict[str, Any]) -> str:
        """Constrói chave de cache para uma chamada de ``func``."""
        module = getattr(func, "__module__", "unknown")
        qualname = getattr(func, "__qualname__", getattr(func, "__name__", "unknown"))
        payload = json.dumps(
            {"args": list(self._drop_bound_arg(func, args)), "kwargs": kwargs},
            sort_keys=True,
            separators=(",", ":"),
            default=_key_default,
        )
        digest = hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]
        return f"{self._prefix}:{module}.{qualname}:{digest}"

    @staticmethod
    def _drop_bound_arg(func: Callable[..., Any], args: tuple[Any, ...]) -> tuple[Any, ...]:
        if not args:
            return args
        try:
            params = list(inspect.signature(func).parameters)
        except (ValueError, TypeError):
            return args
        if params and params[0] in ("self", "cls"):
            return args[1:]
        return args
