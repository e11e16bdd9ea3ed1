"""
Контекст рендеринга с управлением областями видимости.

Контекст - это цепочка областей (scope), каждая из которых отображает имена
на значения. Поиск идет от внутренней области к внешней; внутреннее
связывание скрывает внешнее с тем же именем, но никогда его не изменяет.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from .errors import ConfigError, TypeMismatchError, UndefinedVariableError
from .values import MapValue, Value, to_value

logger = logging.getLogger(__name__)

_yaml = YAML(typ="safe")


def normalize_name(name: str) -> str:
    """Имя переменной без ведущего '$'."""
    return str(name).lstrip("$")


class Scope:
    """
    Одна область видимости: словарь связываний и ссылка на внешнюю область.

    Запечатанная (sealed) область больше не принимает новых связываний.
    """

    __slots__ = ("bindings", "parent", "sealed")

    def __init__(self, parent: Optional["Scope"] = None, bindings: Optional[Dict[str, Value]] = None,
                 sealed: bool = False):
        self.bindings: Dict[str, Value] = dict(bindings or {})
        self.parent = parent
        self.sealed = sealed

    def chain(self) -> Iterator["Scope"]:
        """Области от текущей к корневой."""
        scope: Optional[Scope] = self
        while scope is not None:
            yield scope
            scope = scope.parent


class RenderContext:
    """
    Контекст рендеринга шаблона.

    Корневая область заполняется при создании и запечатывается, поэтому
    один и тот же контекст можно безопасно передавать в параллельные рендеры.
    Новые имена вводятся только в дочерних областях (child/push_scope).
    """

    def __init__(self, bindings: Optional[Mapping[str, Any]] = None):
        """
        Инициализирует контекст с корневой областью.

        Args:
            bindings: Начальные значения (данные Python или Value)
        """
        root = {normalize_name(name): to_value(value) for name, value in (bindings or {}).items()}
        self._scope = Scope(bindings=root, sealed=True)

    @classmethod
    def _from_scope(cls, scope: Scope) -> "RenderContext":
        ctx = cls.__new__(cls)
        ctx._scope = scope
        return ctx

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "RenderContext":
        """Создает контекст из словаря обычных данных Python."""
        if not isinstance(data, Mapping):
            raise ConfigError(f"Context data must be a mapping, got {type(data).__name__}")
        return cls(data)

    @staticmethod
    def builder() -> "ContextBuilder":
        return ContextBuilder()

    # Поиск

    def lookup(self, name: str) -> Optional[Value]:
        """
        Ищет значение по имени от внутренней области к внешней.

        Returns:
            Значение или None, если имя не связано
        """
        name = normalize_name(name)
        for scope in self._scope.chain():
            if name in scope.bindings:
                return scope.bindings[name]
        return None

    def resolve(self, name: str) -> Value:
        """
        Разрешает имя переменной, в том числе путь через точки ($a.b.c).

        Raises:
            UndefinedVariableError: Имя или ключ не найдены
            TypeMismatchError: Промежуточное значение пути не является словарем
        """
        name = normalize_name(name)
        head, *keys = name.split(".")

        value = self.lookup(head)
        if value is None:
            raise UndefinedVariableError(name)

        walked = head
        for key in keys:
            if not isinstance(value, MapValue):
                raise TypeMismatchError(expected="map", found=value.kind, name=walked)
            value = value.get(key)
            walked = f"{walked}.{key}"
            if value is None:
                raise UndefinedVariableError(walked)
        return value

    def is_set(self, name: str) -> bool:
        """Проверяет, разрешается ли имя (включая путь через точки)."""
        try:
            self.resolve(name)
        except (UndefinedVariableError, TypeMismatchError):
            return False
        return True

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.lookup(name) is not None

    def names(self) -> List[str]:
        """Все видимые имена: сначала внешние области, затем новые имена внутренних."""
        scopes = list(self._scope.chain())
        seen: List[str] = []
        for scope in reversed(scopes):
            for name in scope.bindings:
                if name not in seen:
                    seen.append(name)
        return seen

    def as_value(self) -> MapValue:
        """Видимые связывания в виде словаря (для вложения контекста как значения)."""
        return MapValue(tuple((name, self.lookup(name)) for name in self.names()))

    # Области видимости

    @property
    def depth(self) -> int:
        """Количество областей в цепочке (корень = 1)."""
        return sum(1 for _ in self._scope.chain())

    def bind(self, name: str, value: Any) -> None:
        """
        Связывает имя в текущей (внутренней) области.

        Raises:
            RuntimeError: Если текущая область запечатана (корень контекста)
        """
        if self._scope.sealed:
            raise RuntimeError("Cannot bind into a sealed scope; use child() or push_scope() first")
        self._scope.bindings[normalize_name(name)] = to_value(value)

    def push_scope(self) -> None:
        """Открывает новую внутреннюю область."""
        self._scope = Scope(parent=self._scope)

    def pop_scope(self) -> None:
        """
        Закрывает текущую область, восстанавливая внешнюю.

        Raises:
            RuntimeError: Если нет открытой области (попытка закрыть корень)
        """
        if self._scope.parent is None or self._scope.sealed:
            raise RuntimeError("No scope to pop (scope stack is at its root)")
        self._scope = self._scope.parent

    @contextmanager
    def scope(self) -> Iterator["RenderContext"]:
        """Контекстный менеджер: push_scope() на входе, pop_scope() на выходе."""
        self.push_scope()
        try:
            yield self
        finally:
            self.pop_scope()

    def child(self, bindings: Optional[Mapping[str, Any]] = None) -> "RenderContext":
        """
        Создает дочерний контекст с новой областью поверх текущей.

        Внешние области общие (только для чтения), поэтому связывания
        в дочернем контексте не видны ни родителю, ни соседним дочерним.
        """
        ctx = self._from_scope(Scope(parent=self._scope))
        for name, value in (bindings or {}).items():
            ctx.bind(name, value)
        return ctx

    def copy(self) -> "RenderContext":
        """Структурная копия всей цепочки областей."""
        copied: Optional[Scope] = None
        for scope in reversed(list(self._scope.chain())):
            copied = Scope(parent=copied, bindings=scope.bindings, sealed=scope.sealed)
        return self._from_scope(copied)

    def __repr__(self) -> str:
        return f"RenderContext(names={self.names()!r}, depth={self.depth})"


class ContextBuilder:
    """
    Построитель контекста: последовательные insert() и финальный build().

    Построенный контекст неизменяем на уровне корневой области.
    """

    def __init__(self):
        self._bindings: Dict[str, Value] = {}

    def insert(self, name: str, value: Any) -> "ContextBuilder":
        self._bindings[normalize_name(name)] = to_value(value)
        return self

    def update(self, data: Mapping[str, Any]) -> "ContextBuilder":
        for name, value in data.items():
            self.insert(name, value)
        return self

    def build(self) -> RenderContext:
        ctx = RenderContext(self._bindings)
        logger.debug(f"Built render context with {len(self._bindings)} bindings")
        return ctx


def context_from_yaml(text: str) -> RenderContext:
    """
    Создает контекст из YAML-текста (в памяти).

    Args:
        text: YAML-документ, корнем которого является словарь

    Raises:
        ConfigError: При синтаксической ошибке YAML или неподдерживаемых значениях
    """
    try:
        raw = _yaml.load(text)
    except YAMLError as e:
        raise ConfigError(f"Invalid YAML context data: {e}") from e
    if raw is None:
        raw = {}
    return RenderContext.from_mapping(raw)


__all__ = ["RenderContext", "ContextBuilder", "Scope", "context_from_yaml", "normalize_name"]
