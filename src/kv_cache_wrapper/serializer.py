"""Codificação textual canônica (JSON) dos valores cacheados."""

import base64
import json
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from .exceptions import CacheSerializationError

JSON_FORMAT = "json"
TEXT_FORMAT = "text"
SUPPORTED_FORMATS = (JSON_FORMAT, TEXT_FORMAT)


def normalize_for_serialization(obj: Any) -> Any:
    """Converte tipos Python comuns para formas compatíveis com JSON.

    - datetime, date, time -> string ISO 8601
    - Decimal, UUID -> string
    - Enum -> valor do membro
    - bytes -> string base64
    - set, frozenset -> lista ordenada
    - tuple -> lista

    Raises:
        CacheSerializationError: Se o tipo não for suportado
    """
    if obj is None or isinstance(obj, (bool, int, float, str)):
        return obj
    if isinstance(obj, Enum):
        return normalize_for_serialization(obj.value)
    if isinstance(obj, (datetime, date, time)):
        return obj.isoformat()
    if isinstance(obj, (Decimal, UUID)):
        return str(obj)
    if isinstance(obj, bytes):
        return base64.b64encode(obj).decode("ascii")
    if isinstance(obj, (set, frozenset)):
        items = [normalize_for_serialization(item) for item in obj]
        return sorted(items, key=lambda x: (type(x).__name__, str(x)))
    if isinstance(obj, (list, tuple)):
        return [normalize_for_serialization(item) for item in obj]
    if isinstance(obj, dict):
        return {str(key): normalize_for_serialization(value) for key, value in obj.items()}

    raise CacheSerializationError(f"Tipo não suportado para serialização: {type(obj).__name__}")


class JsonSerializer:
    """Serializer JSON compacto.

    Produz o mesmo texto que um ``JSON.stringify`` sem espaços, de forma que
    ``"computed"`` vira ``'"computed"'``. A ordem das chaves de dicts é preservada.

    Note:
        Tipos normalizados não voltam ao tipo original na leitura:
        datetime vira string, set vira lista.
    """

    def serialize(self, data: Any) -> str:
        """Serializa dados Python para texto JSON.

        Raises:
            CacheSerializationError: Se falhar ao serializar
        """
        try:
            return json.dumps(
                normalize_for_serialization(data),
                separators=(",", ":"),
                ensure_ascii=False,
                allow_nan=False,
            )
        except (TypeError, ValueError) as e:
            raise CacheSerializationError(f"Falha ao serializar dados: {e}") from e

    def deserialize(self, data: str | bytes) -> Any:
        """Deserializa texto JSON para dados Python.

        Raises:
            CacheSerializationError: Se o texto não for JSON válido
        """
        try:
            if isinstance(data, bytes):
                data = data.decode("utf-8")
            return json.loads(data)
        except UnicodeDecodeError as e:
            raise CacheSerializationError(f"Encoding UTF-8 inválido: {e}") from e
        except json.JSONDecodeError as e:
            raise CacheSerializationError(f"JSON inválido: {e}") from e
