"""Configuração do wrapper.

Resolve valores seguindo a precedência:

1. Parâmetro explícito (maior precedência)
2. Variável de ambiente
3. Valor padrão (menor precedência)
"""

import os
from collections.abc import Mapping
from typing import Any


class CacheConfig:
    """Gerenciador de configuração do KVWrapper."""

    # Nomes das variáveis de ambiente
    ENV_DEBUG = "KV_CACHE_DEBUG"
    ENV_DEFAULT_TTL = "KV_CACHE_DEFAULT_TTL"

    # Valores padrão
    DEFAULT_DEBUG = False
    DEFAULT_KEY_PREFIX = "cache"

    # Opções de escrita que o wrapper valida quando fornecidas como padrão
    TTL_OPTION = "expirationTtl"
    EXPIRATION_OPTION = "expiration"
    METADATA_OPTION = "metadata"

    _TRUTHY = frozenset({"1", "true", "yes", "on"})

    @classmethod
    def resolve_debug(cls, explicit_value: bool | None = None) -> bool:
        """Resolve a flag de debug.

        Args:
            explicit_value: Valor passado na construção do wrapper

        Returns:
            Flag de debug resolvida
        """
        if explicit_value is not None:
            return explicit_value

        env_value = os.getenv(cls.ENV_DEBUG)
        if env_value:
            return env_value.strip().lower() in cls._TRUTHY

        return cls.DEFAULT_DEBUG

    @classmethod
    def resolve_store_options(cls, explicit_options: Mapping[str, Any]) -> dict[str, Any]:
        """Resolve as opções padrão de escrita.

        Se nenhuma expiração for informada, usa KV_CACHE_DEFAULT_TTL quando definida.

        Raises:
            ValueError: Se KV_CACHE_DEFAULT_TTL não for inteiro
        """
        options = dict(explicit_options)
        if cls.TTL_OPTION in options or cls.EXPIRATION_OPTION in options:
            return options

        env_value = os.getenv(cls.ENV_DEFAULT_TTL)
        if env_value:
            try:
                options[cls.TTL_OPTION] = int(env_value)
            except ValueError as e:
                raise ValueError(f"{cls.ENV_DEFAULT_TTL} deve ser inteiro, recebido {env_value!r}") from e

        return options

    @classmethod
    def validate_store_options(cls, options: Mapping[str, Any]) -> None:
        """Valida as opções padrão de escrita.

        Args:
            options: Opções de escrita do wrapper

        Raises:
            ValueError: Se alguma opção conhecida for inválida
        """
        if "cacheable" in options:
            raise ValueError("cacheable não é uma opção de escrita; use o controller da chamada")
        cls._validate_positive_int(options, cls.TTL_OPTION)
        cls._validate_positive_int(options, cls.EXPIRATION_OPTION)

        metadata = options.get(cls.METADATA_OPTION)
        if metadata is not None and not isinstance(metadata, Mapping):
            raise ValueError(f"{cls.METADATA_OPTION} deve ser um mapping, recebido {type(metadata).__name__}")

    @classmethod
    def _validate_positive_int(cls, options: Mapping[str, Any], name: str) -> None:
        value = options.get(name)
        if value is None:
            return
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise ValueError(f"{name} deve ser inteiro >= 1, recebido {value!r}")
