"""Store adapter para Dapr State Store via API HTTP do sidecar."""

import logging
import os
import time
from collections.abc import Callable, Mapping
from typing import Any

import httpx

from .exceptions import CacheBackendError, CacheConnectionError, CacheKeyError, CacheTimeoutError
from .serializer import JSON_FORMAT, SUPPORTED_FORMATS, TEXT_FORMAT, JsonSerializer

logger = logging.getLogger(__name__)

DEFAULT_DAPR_HOST = "127.0.0.1"
DEFAULT_DAPR_HTTP_PORT = 3500
DEFAULT_TIMEOUT_SECONDS = 5.0
MIN_TTL_SECONDS = 1

TTL_METADATA = "ttlInSeconds"
MAPPED_OPTIONS = frozenset({"expirationTtl", "expiration", "metadata"})
WRITE_OK_STATUSES = frozenset({200, 201, 204})


def sidecar_url() -> str:
    """URL do sidecar a partir de DAPR_HTTP_HOST e DAPR_HTTP_PORT."""
    host = os.getenv("DAPR_HTTP_HOST", DEFAULT_DAPR_HOST)
    port = os.getenv("DAPR_HTTP_PORT", str(DEFAULT_DAPR_HTTP_PORT))
    return f"http://{host}:{port}"


class DaprStateBackend:
    """Store adapter assíncrono para Dapr State Store.

    Leitura em ``GET /v1.0/state/{store}/{key}`` e escrita em
    ``POST /v1.0/state/{store}``. As opções de escrita viram metadata do item:

    - expirationTtl -> ttlInSeconds
    - expiration (epoch UNIX absoluto) -> ttlInSeconds restante (mínimo 1)
    - metadata (mapping) -> entradas extras
    - demais opções -> entradas string

    Ausência é somente 204, ou 200 sem corpo. Qualquer outro status,
    erro de conexão ou timeout vira exceção.

    Attributes:
        store_name: Nome do state store configurado no Dapr
    """

    def __init__(
        self,
        store_name: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        dapr_url: str | None = None,
        client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Inicializa o adapter.

        Args:
            store_name: Nome do state store Dapr
            timeout: Timeout das requisições quando o adapter cria o cliente
            dapr_url: URL do sidecar (default: variáveis de ambiente)
            client: Cliente httpx já configurado; o chamador continua dono dele
            clock: Relógio usado para converter expiration em TTL

        Raises:
            CacheKeyError: Se store_name for vazio
        """
        if not store_name:
            raise CacheKeyError("store_name não pode ser vazio")

        self._store_name = store_name
        self._base_url = dapr_url or sidecar_url()
        self._timeout = timeout
        self._clock = clock
        self._serializer = JsonSerializer()
        self._client = client
        self._owns_client = client is None

    @property
    def store_name(self) -> str:
        return self._store_name

    def _http(self) -> httpx.AsyncClient:
        # Sem await entre a checagem e a criação: não há corrida no event loop
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self._base_url, timeout=self._timeout)
        return self._client

    async def _send(self, method: str, path: str, key: str, **kwargs: Any) -> httpx.Response:
        """Executa a requisição traduzindo falhas de transporte."""
        try:
            return await self._http().request(method, path, **kwargs)
        except httpx.ConnectError as e:
            raise CacheConnectionError(f"Não foi possível conectar ao sidecar Dapr: {e}", key=key) from e
        except httpx.TimeoutException as e:
            raise CacheTimeoutError(f"Timeout no Dapr para chave {key}: {e}", key=key) from e
        except httpx.HTTPError as e:
            raise CacheBackendError(f"Erro HTTP no Dapr para chave {key}: {e}", key=key) from e

    def _item_metadata(self, options: Mapping[str, Any]) -> dict[str, str]:
        metadata = {name: str(value) for name, value in options.items() if name not in MAPPED_OPTIONS and value is not None}
        for name, value in (options.get("metadata") or {}).items():
            metadata[str(name)] = str(value)

        if options.get("expirationTtl") is not None:
            metadata[TTL_METADATA] = str(int(options["expirationTtl"]))
        elif options.get("expiration") is not None:
            remaining = int(options["expiration"] - self._clock())
            metadata[TTL_METADATA] = str(max(MIN_TTL_SECONDS, remaining))
        return metadata

    async def get(self, key: str, format: str = JSON_FORMAT) -> Any | None:
        """Lê a chave do state store.

        Args:
            key: Chave do cache
            format: "json" (deserializa) ou "text" (texto serializado)

        Returns:
            Valor armazenado ou None se ausente

        Raises:
            CacheKeyError: Se a chave for vazia
            CacheConnectionError: Se o sidecar estiver inacessível
            CacheTimeoutError: Se a requisição exceder o timeout
            CacheBackendError: Para qualquer status diferente de 200/204
        """
        if not key:
            raise CacheKeyError("Chave não pode ser vazia", key=key)
        if format not in SUPPORTED_FORMATS:
            raise ValueError(f"Formato não suportado: {format}")

        response = await self._send("GET", f"/v1.0/state/{self._store_name}/{key}", key)

        if response.status_code == 204:
            return None
        if response.status_code != 200:
            raise CacheBackendError(
                f"Resposta inesperada do Dapr ao ler chave {key}: {response.status_code}",
                key=key,
                status_code=response.status_code,
            )
        if not response.content:
            return None

        stored = self._serializer.deserialize(response.content)
        if not isinstance(stored, str):
            # Gravado por outro cliente como JSON estruturado
            logger.debug("Valor estruturado no Dapr para chave %s", key)
            return response.text if format == TEXT_FORMAT else stored
        return stored if format == TEXT_FORMAT else self._serializer.deserialize(stored)

    async def put(self, key: str, value: str, options: Mapping[str, Any]) -> None:
        """Grava o texto serializado no state store.

        Raises:
            CacheKeyError: Se a chave for vazia
            CacheConnectionError: Se o sidecar estiver inacessível
            CacheTimeoutError: Se a requisição exceder o timeout
            CacheBackendError: Se o Dapr não confirmar a escrita
        """
        if not key:
            raise CacheKeyError("Chave não pode ser vazia", key=key)

        item: dict[str, Any] = {"key": key, "value": value}
        metadata = self._item_metadata(options)
        if metadata:
            item["metadata"] = metadata

        response = await self._send("POST", f"/v1.0/state/{self._store_name}", key, json=[item])
        if response.status_code not in WRITE_OK_STATUSES:
            raise CacheBackendError(
                f"Falha ao salvar chave {key}: {response.status_code}",
                key=key,
                status_code=response.status_code,
            )
        logger.debug("Chave gravada no Dapr: %s, metadata: %s", key, metadata)

    async def aclose(self) -> None:
        """Fecha o cliente HTTP se ele foi criado pelo adapter."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "DaprStateBackend":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()
