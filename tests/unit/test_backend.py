"""Testes para o store adapter Dapr State."""

import json
from unittest.mock import patch

import httpx
import pytest

from kv_cache_wrapper.backend import DaprStateBackend, sidecar_url
from kv_cache_wrapper.exceptions import (
    CacheBackendError,
    CacheConnectionError,
    CacheKeyError,
    CacheTimeoutError,
)

BASE_URL = "http://test:3500"


def make_backend(handler, **kwargs) -> DaprStateBackend:
    """Cria backend com cliente httpx sobre MockTransport."""
    client = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))
    return DaprStateBackend("store", dapr_url=BASE_URL, client=client, **kwargs)


class TestSidecarUrl:
    """Testes para sidecar_url."""

    def test_default_url(self) -> None:
        """Deve retornar URL padrão."""
        with patch.dict("os.environ", {}, clear=True):
            assert sidecar_url() == "http://127.0.0.1:3500"

    def test_custom_host_and_port(self) -> None:
        """Deve usar variáveis de ambiente."""
        with patch.dict("os.environ", {"DAPR_HTTP_HOST": "custom", "DAPR_HTTP_PORT": "3501"}):
            assert sidecar_url() == "http://custom:3501"


class TestDaprStateBackendInit:
    """Testes de construção."""

    def test_init_with_store_name(self) -> None:
        backend = DaprStateBackend("my-store")
        assert backend.store_name == "my-store"

    def test_init_empty_store_name_raises_error(self) -> None:
        """Deve lançar erro com store_name vazio."""
        with pytest.raises(CacheKeyError):
            DaprStateBackend("")

    @pytest.mark.asyncio
    async def test_requests_use_store_paths(self) -> None:
        """Deve usar os caminhos de state do store configurado."""
        paths = []

        def handler(request: httpx.Request) -> httpx.Response:
            paths.append((request.method, request.url.path))
            return httpx.Response(204)

        backend = make_backend(handler)
        await backend.get("mykey")
        await backend.put("mykey", "1", {})

        assert paths == [("GET", "/v1.0/state/store/mykey"), ("POST", "/v1.0/state/store")]


class TestBuildMetadata:
    """Testes para o mapeamento de opções em metadata do Dapr."""

    def test_expiration_ttl(self) -> None:
        backend = DaprStateBackend("store")
        assert backend._item_metadata({"expirationTtl": 300}) == {"ttlInSeconds": "300"}

    def test_absolute_expiration(self) -> None:
        """expiration deve virar TTL restante."""
        backend = DaprStateBackend("store", clock=lambda: 1000.0)
        assert backend._item_metadata({"expiration": 1600}) == {"ttlInSeconds": "600"}

    def test_past_expiration_clamped(self) -> None:
        """Expiração no passado deve virar o TTL mínimo."""
        backend = DaprStateBackend("store", clock=lambda: 1000.0)
        assert backend._item_metadata({"expiration": 900}) == {"ttlInSeconds": "1"}

    def test_ttl_wins_over_expiration(self) -> None:
        backend = DaprStateBackend("store", clock=lambda: 1000.0)
        assert backend._item_metadata({"expiration": 1600, "expirationTtl": 5}) == {"ttlInSeconds": "5"}

    def test_metadata_and_extra_options(self) -> None:
        """metadata e opções desconhecidas viram metadata string."""
        backend = DaprStateBackend("store")
        metadata = backend._item_metadata({"metadata": {"version": 2}, "contentType": "application/json"})
        assert metadata == {"version": "2", "contentType": "application/json"}

    def test_empty(self) -> None:
        assert DaprStateBackend("store")._item_metadata({}) == {}


class TestDaprStateBackendGet:
    """Testes para get."""

    @pytest.mark.asyncio
    async def test_get_miss_204(self) -> None:
        """Status 204 deve ser ausência."""
        backend = make_backend(lambda request: httpx.Response(204))
        assert await backend.get("mykey") is None

    @pytest.mark.asyncio
    async def test_get_hit_json(self) -> None:
        """Deve desembrulhar a string gravada e deserializar o JSON."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.path)
            return httpx.Response(200, content=json.dumps('{"a":1}').encode())

        backend = make_backend(handler)

        assert await backend.get("mykey") == {"a": 1}
        assert seen == ["/v1.0/state/store/mykey"]

    @pytest.mark.asyncio
    async def test_get_hit_text(self) -> None:
        """Formato text deve devolver o texto serializado."""
        backend = make_backend(lambda request: httpx.Response(200, content=json.dumps('"x"').encode()))
        assert await backend.get("mykey", "text") == '"x"'

    @pytest.mark.asyncio
    async def test_get_structured_value(self) -> None:
        """Valor estruturado gravado por outro cliente deve ser retornado como está."""
        backend = make_backend(lambda request: httpx.Response(200, json={"a": 1}))
        assert await backend.get("mykey") == {"a": 1}

    @pytest.mark.asyncio
    async def test_get_unexpected_status_raises(self) -> None:
        """Status inesperado deve lançar CacheBackendError."""
        backend = make_backend(lambda request: httpx.Response(500, content=b"error"))
        with pytest.raises(CacheBackendError) as exc_info:
            await backend.get("mykey")
        assert exc_info.value.status_code == 500
        assert exc_info.value.key == "mykey"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [500, 503, 404])
    async def test_get_error_status_with_empty_body_raises(self, status: int) -> None:
        """Status de erro sem corpo não pode ser lido como ausência."""
        backend = make_backend(lambda request: httpx.Response(status))
        with pytest.raises(CacheBackendError) as exc_info:
            await backend.get("mykey")
        assert exc_info.value.status_code == status

    @pytest.mark.asyncio
    async def test_get_200_with_empty_body_is_miss(self) -> None:
        """200 sem corpo deve ser ausência."""
        backend = make_backend(lambda request: httpx.Response(200))
        assert await backend.get("mykey") is None

    @pytest.mark.asyncio
    async def test_read_failure_stops_wrapper_before_producer(self) -> None:
        """Falha de leitura deve propagar pelo wrapper sem executar o producer."""
        from kv_cache_wrapper.wrapper import make_kv_wrapper

        kv = make_kv_wrapper(make_backend(lambda request: httpx.Response(500)), debug=False)
        calls = []

        with pytest.raises(CacheBackendError) as exc_info:
            await kv("k", lambda: calls.append(1))

        assert calls == []
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_get_connect_error(self) -> None:
        """Erro de conexão deve lançar CacheConnectionError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(CacheConnectionError):
            await make_backend(handler).get("mykey")

    @pytest.mark.asyncio
    async def test_get_timeout(self) -> None:
        """Timeout deve lançar CacheTimeoutError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(CacheTimeoutError):
            await make_backend(handler).get("mykey")

    @pytest.mark.asyncio
    async def test_get_empty_key_raises_error(self) -> None:
        with pytest.raises(CacheKeyError):
            await DaprStateBackend("store").get("")


class TestDaprStateBackendPut:
    """Testes para put."""

    @pytest.mark.asyncio
    async def test_put_payload(self) -> None:
        """Deve enviar chave, valor e metadata no formato do Dapr."""
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(204)

        backend = make_backend(handler)
        await backend.put("k", '"x"', {"expirationTtl": 100})

        assert requests[0].method == "POST"
        assert requests[0].url.path == "/v1.0/state/store"
        assert json.loads(requests[0].content) == [
            {"key": "k", "value": '"x"', "metadata": {"ttlInSeconds": "100"}}
        ]

    @pytest.mark.asyncio
    async def test_put_without_options_omits_metadata(self) -> None:
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(201)

        await make_backend(handler).put("k", "1", {})

        assert bodies == [[{"key": "k", "value": "1"}]]

    @pytest.mark.asyncio
    async def test_put_failure_status_raises(self) -> None:
        """Status de erro deve lançar CacheBackendError."""
        backend = make_backend(lambda request: httpx.Response(400))
        with pytest.raises(CacheBackendError):
            await backend.put("k", "1", {})

    @pytest.mark.asyncio
    async def test_put_connect_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(CacheConnectionError):
            await make_backend(handler).put("k", "1", {})

    @pytest.mark.asyncio
    async def test_put_empty_key_raises_error(self) -> None:
        with pytest.raises(CacheKeyError):
            await DaprStateBackend("store").put("", "1", {})


class TestDaprStateBackendLifecycle:
    """Testes de ciclo de vida do cliente HTTP."""

    @pytest.mark.asyncio
    async def test_context_manager_closes_client(self) -> None:
        """Deve fechar o cliente ao sair do contexto."""
        async with DaprStateBackend("store", dapr_url=BASE_URL) as backend:
            client = backend._http()
            assert backend._http() is client

        assert backend._client is None
        assert client.is_closed

    @pytest.mark.asyncio
    async def test_injected_client_left_open(self) -> None:
        """Cliente injetado pertence ao chamador e não deve ser fechado."""
        client = httpx.AsyncClient(base_url=BASE_URL)
        async with DaprStateBackend("store", client=client):
            pass

        assert not client.is_closed
        await client.aclose()

    @pytest.mark.asyncio
    async def test_round_trip_through_wrapper(self) -> None:
        """Fluxo miss -> put -> hit usando um sidecar simulado."""
        from kv_cache_wrapper.wrapper import make_kv_wrapper

        state: dict[str, str] = {}

        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "POST":
                for item in json.loads(request.content):
                    state[item["key"]] = item["value"]
                return httpx.Response(204)
            key = request.url.path.rsplit("/", 1)[-1]
            if key not in state:
                return httpx.Response(204)
            return httpx.Response(200, content=json.dumps(state[key]).encode())

        kv = make_kv_wrapper(make_backend(handler), debug=False, expirationTtl=60)
        calls = 0

        async def producer() -> dict:
            nonlocal calls
            calls += 1
            return {"name": "Test User"}

        assert await kv("user", producer) == {"name": "Test User"}
        assert await kv("user", producer) == {"name": "Test User"}
        assert calls == 1
