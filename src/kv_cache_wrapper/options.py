"""Resolução de opções e decisão de cacheabilidade.

Cada chamada do wrapper pode receber um controller que decide, a partir
do resultado computado, se o valor deve ser gravado e com quais opções.
O controller é normalizado para uma de três variantes:

- Absent: sem controller (cacheável, apenas as opções padrão)
- Static: decisão fixa (bool, mapping ou CacheDecision)
- Dynamic: função que recebe o resultado e devolve a decisão (sync ou async)

Precedência das opções de escrita: chamada > padrões do wrapper.
"""

import inspect
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Union

CACHEABLE_FIELD = "cacheable"


def _freeze(options: Mapping[str, Any] | None) -> Mapping[str, Any]:
    return MappingProxyType(dict(options or {}))


@dataclass(frozen=True)
class CommonOptions:
    """Opções do wrapper, fixadas na construção.

    Attributes:
        debug: Emite logs de "cache hit" e "cache set"
        store_options: Opções padrão de escrita (somente leitura)
    """

    debug: bool = False
    store_options: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Cópia própria e imutável: chamadas não compartilham estado mutável
        object.__setattr__(self, "store_options", _freeze(self.store_options))


@dataclass(frozen=True)
class CacheDecision:
    """Decisão de cacheabilidade de uma chamada.

    Attributes:
        cacheable: Se o resultado deve ser gravado (default: True)
        options: Opções de escrita que sobrescrevem os padrões do wrapper
    """

    cacheable: bool = True
    options: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if CACHEABLE_FIELD in self.options:
            raise ValueError("options não pode conter 'cacheable'; use o campo cacheable")
        object.__setattr__(self, "options", _freeze(self.options))

    @classmethod
    def from_value(cls, value: "DecisionInput") -> "CacheDecision":
        """Normaliza uma decisão vinda do usuário.

        - None -> cacheável, sem opções extras
        - bool b -> CacheDecision(cacheable=b), sem opções extras
        - mapping -> campo "cacheable" separado, resto vira opções; o default True
          vale só quando a chave falta (None presente conta como falso)
        - CacheDecision -> retornada como está

        Raises:
            TypeError: Se o valor não for um desses formatos
        """
        if value is None:
            return cls()
        if isinstance(value, CacheDecision):
            return value
        if isinstance(value, bool):
            return cls(cacheable=value)
        if isinstance(value, Mapping):
            options = {name: option for name, option in value.items() if name != CACHEABLE_FIELD}
            cacheable = bool(value[CACHEABLE_FIELD]) if CACHEABLE_FIELD in value else True
            return cls(cacheable=cacheable, options=options)
        raise TypeError(f"Decisão de cache inválida: {type(value).__name__}")


DecisionInput = Union[CacheDecision, Mapping[str, Any], bool, None]
ControllerFunc = Callable[[Any], Union[DecisionInput, Awaitable[DecisionInput]]]


@dataclass(frozen=True)
class Absent:
    """Nenhum controller informado."""


@dataclass(frozen=True)
class Static:
    """Decisão fixa, conhecida antes da computação."""

    decision: CacheDecision = field(default_factory=CacheDecision)


@dataclass(frozen=True)
class Dynamic:
    """Decisão calculada a partir do resultado computado."""

    func: ControllerFunc


Controller = Union[Absent, Static, Dynamic]
ControllerInput = Union[Controller, ControllerFunc, DecisionInput]


@dataclass(frozen=True)
class ResolvedOptions:
    """Resultado da resolução: flag de cacheabilidade e opções finais de escrita."""

    cacheable: bool
    store_options: dict[str, Any]


def as_controller(value: ControllerInput) -> Controller:
    """Converte a entrada da chamada em uma variante de controller.

    Args:
        value: None, bool, mapping, CacheDecision, função ou variante já pronta

    Returns:
        Absent, Static ou Dynamic
    """
    if isinstance(value, (Absent, Static, Dynamic)):
        return value
    if value is None:
        return Absent()
    if callable(value) and not isinstance(value, (CacheDecision, Mapping)):
        return Dynamic(value)
    return Static(CacheDecision.from_value(value))


def merge_store_options(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Mescla opções de escrita campo a campo.

    Os campos de ``override`` (chamada) vencem os de ``base`` (wrapper).
    O campo ``cacheable`` nunca entra no resultado.
    """
    merged: dict[str, Any] = {}
    for name, option in base.items():
        if name != CACHEABLE_FIELD:
            merged[name] = option
    for name, option in override.items():
        if name != CACHEABLE_FIELD:
            merged[name] = option
    return merged


async def decide(result: Any, controller: ControllerInput) -> CacheDecision:
    """Obtém a decisão de cacheabilidade para um resultado já computado."""
    resolved = as_controller(controller)

    if isinstance(resolved, Dynamic):
        outcome = resolved.func(result)
        if inspect.isawaitable(outcome):
            outcome = await outcome
        return CacheDecision.from_value(outcome)

    if isinstance(resolved, Static):
        return resolved.decision

    return CacheDecision()


async def resolve_options(result: Any, controller: ControllerInput, common: CommonOptions) -> ResolvedOptions:
    """Resolve cacheabilidade e opções finais de escrita.

    Args:
        result: Valor já computado pelo producer
        controller: Controller da chamada (qualquer formato aceito por as_controller)
        common: Opções do wrapper

    Returns:
        ResolvedOptions com a flag e as opções mescladas

    Raises:
        Exception: Propaga falhas do controller dinâmico sem tradução
    """
    decision = await decide(result, controller)
    return ResolvedOptions(
        cacheable=decision.cacheable,
        store_options=merge_store_options(common.store_options, decision.options),
    )
