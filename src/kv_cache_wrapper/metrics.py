"""Métricas do wrapper, contadas por desfecho da chamada.

Cada chamada termina em um desfecho: ``hit`` (valor já estava no store),
``miss`` (leitura vazia), ``stored`` (resultado gravado), ``skipped``
(controller recusou a gravação) ou ``error`` (falha do store). Um miss é
sempre seguido de ``stored``, ``skipped`` ou ``error``, ou da exceção do
producer/controller.
"""

import logging
from collections import Counter, deque
from dataclasses import dataclass, field
from enum import Enum
from threading import Lock

from opentelemetry import metrics as otel_metrics

logger = logging.getLogger(__name__)

__all__ = [
    "CacheStats",
    "InMemoryMetrics",
    "KeyStats",
    "NoOpMetrics",
    "OpenTelemetryMetrics",
    "Outcome",
]


class Outcome(str, Enum):
    HIT = "hit"
    MISS = "miss"
    STORED = "stored"
    SKIPPED = "skipped"
    ERROR = "error"


class NoOpMetrics:
    """Coletor que descarta tudo (default)."""

    def record_hit(self, key: str, latency: float) -> None:
        pass

    def record_miss(self, key: str, latency: float) -> None:
        pass

    def record_write(self, key: str, size: int) -> None:
        pass

    def record_skip(self, key: str) -> None:
        pass

    def record_error(self, key: str, error: Exception) -> None:
        pass


@dataclass(frozen=True)
class KeyStats:
    """Contagem de desfechos de uma chave."""

    outcomes: dict[Outcome, int] = field(default_factory=dict)
    bytes_stored: int = 0

    def count(self, outcome: Outcome) -> int:
        return self.outcomes.get(outcome, 0)

    @property
    def hits(self) -> int:
        return self.count(Outcome.HIT)

    @property
    def misses(self) -> int:
        return self.count(Outcome.MISS)

    @property
    def writes(self) -> int:
        return self.count(Outcome.STORED)

    @property
    def skips(self) -> int:
        return self.count(Outcome.SKIPPED)

    @property
    def errors(self) -> int:
        return self.count(Outcome.ERROR)

    @property
    def hit_ratio(self) -> float:
        lookups = self.hits + self.misses
        return self.hits / lookups if lookups else 0.0


@dataclass(frozen=True)
class CacheStats(KeyStats):
    """Snapshot agregado, com amostras recentes de latência e tamanho.

    ``skip_ratio`` mede quantos misses o controller recusou gravar.
    """

    hit_latencies: list[float] = field(default_factory=list)
    miss_latencies: list[float] = field(default_factory=list)
    write_sizes: list[int] = field(default_factory=list)

    @property
    def skip_ratio(self) -> float:
        decided = self.writes + self.skips
        return self.skips / decided if decided else 0.0

    @property
    def avg_hit_latency_ms(self) -> float:
        return _mean(self.hit_latencies) * 1000

    @property
    def avg_miss_latency_ms(self) -> float:
        return _mean(self.miss_latencies) * 1000


def _mean(samples: list[float]) -> float:
    return sum(samples) / len(samples) if samples else 0.0


class InMemoryMetrics:
    """Coletor em memória, útil em testes e desenvolvimento. Thread-safe.

    Attributes:
        max_samples: Quantas amostras recentes de latência/tamanho guardar
    """

    def __init__(self, max_samples: int = 1000) -> None:
        self._max_samples = max_samples
        self._lock = Lock()
        self.reset()

    def reset(self) -> None:
        """Zera contadores e amostras."""
        with self._lock:
            self._totals: Counter[Outcome] = Counter()
            self._per_key: dict[str, Counter[Outcome]] = {}
            self._bytes: Counter[str] = Counter()
            self._samples: dict[str, deque] = {
                name: deque(maxlen=self._max_samples) for name in ("hit", "miss", "size")
            }

    def _count(self, key: str, outcome: Outcome) -> None:
        self._totals[outcome] += 1
        self._per_key.setdefault(key, Counter())[outcome] += 1

    def record_hit(self, key: str, latency: float) -> None:
        with self._lock:
            self._count(key, Outcome.HIT)
            self._samples["hit"].append(latency)

    def record_miss(self, key: str, latency: float) -> None:
        with self._lock:
            self._count(key, Outcome.MISS)
            self._samples["miss"].append(latency)

    def record_write(self, key: str, size: int) -> None:
        with self._lock:
            self._count(key, Outcome.STORED)
            self._samples["size"].append(size)
            self._bytes[key] += size

    def record_skip(self, key: str) -> None:
        with self._lock:
            self._count(key, Outcome.SKIPPED)

    def record_error(self, key: str, error: Exception) -> None:
        with self._lock:
            self._count(key, Outcome.ERROR)
        logger.debug("store falhou para %s: %s", key, type(error).__name__)

    def get_stats(self) -> CacheStats:
        """Snapshot agregado de todas as chaves."""
        with self._lock:
            return CacheStats(
                outcomes=dict(self._totals),
                bytes_stored=sum(self._bytes.values()),
                hit_latencies=list(self._samples["hit"]),
                miss_latencies=list(self._samples["miss"]),
                write_sizes=list(self._samples["size"]),
            )

    def get_key_stats(self, key: str) -> KeyStats | None:
        """Snapshot de uma chave, ou None se ela nunca foi vista."""
        with self._lock:
            outcomes = self._per_key.get(key)
            if outcomes is None:
                return None
            return KeyStats(outcomes=dict(outcomes), bytes_stored=self._bytes[key])


class OpenTelemetryMetrics:
    """Exporta os desfechos via OpenTelemetry.

    Instrumentos:
    - kv_cache.calls (counter): uma contagem por desfecho, atributo ``outcome``
    - kv_cache.lookup.duration (histogram): leitura no store, atributo ``outcome`` hit/miss
    - kv_cache.stored.size (histogram): bytes gravados

    Falhas levam também o atributo ``error_type``. A chave só vira atributo
    com ``key_attribute=True``, pois chaves costumam ter alta cardinalidade.

    Example:
        ```python
        from opentelemetry import metrics
        from opentelemetry.sdk.metrics import MeterProvider

        metrics.set_meter_provider(MeterProvider())
        kv = make_kv_wrapper(store, metrics=OpenTelemetryMetrics())
        ```
    """

    def __init__(self, meter_name: str = "kv_cache_wrapper", key_attribute: bool = False) -> None:
        meter = otel_metrics.get_meter(meter_name)
        self._key_attribute = key_attribute
        self._calls = meter.create_counter("kv_cache.calls", description="Chamadas por desfecho", unit="1")
        self._lookup_duration = meter.create_histogram(
            "kv_cache.lookup.duration", description="Duração da leitura no store", unit="s"
        )
        self._stored_size = meter.create_histogram(
            "kv_cache.stored.size", description="Tamanho dos valores gravados", unit="By"
        )

    def _attributes(self, key: str, outcome: Outcome, **extra: str) -> dict[str, str]:
        attributes = {"outcome": outcome.value, **extra}
        if self._key_attribute:
            attributes["key"] = key
        return attributes

    def record_hit(self, key: str, latency: float) -> None:
        attributes = self._attributes(key, Outcome.HIT)
        self._calls.add(1, attributes)
        self._lookup_duration.record(latency, attributes)

    def record_miss(self, key: str, latency: float) -> None:
        attributes = self._attributes(key, Outcome.MISS)
        self._calls.add(1, attributes)
        self._lookup_duration.record(latency, attributes)

    def record_write(self, key: str, size: int) -> None:
        attributes = self._attributes(key, Outcome.STORED)
        self._calls.add(1, attributes)
        self._stored_size.record(size, attributes)

    def record_skip(self, key: str) -> None:
        self._calls.add(1, self._attributes(key, Outcome.SKIPPED))

    def record_error(self, key: str, error: Exception) -> None:
        self._calls.add(1, self._attributes(key, Outcome.ERROR, error_type=type(error).__name__))
