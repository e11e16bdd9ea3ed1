"""
Реестр пользовательских функций (обработчиков тегов).

Реестр отображает имя тега на обработчик и фиксируется при создании
рендерера: во время рендеринга он не изменяется.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Sequence, Union

from .nodes import AttributeSet, ExprNode

logger = logging.getLogger(__name__)

# Управляющие формы вычисляются ядром и не могут быть переопределены
CONTROL_FORMS = frozenset({"if", "for", "switch", "case"})


class TagHandler(ABC):
    """
    Базовый интерфейс обработчика пользовательского тега.

    Обработчик получает невычисленные атрибуты и детей, рендерер и контекст,
    а возвращает упорядоченные фрагменты, которые склеиваются в вывод
    так же, как вывод встроенных тегов.
    """

    @abstractmethod
    def evaluate(
        self,
        attributes: AttributeSet,
        children: Sequence[ExprNode],
        renderer: Any,
        context: Any,
    ) -> List[str]:
        """
        Вычисляет тег.

        Args:
            attributes: Атрибуты как записаны в шаблоне (переменные не разрешены)
            children: Невычисленные дочерние узлы
            renderer: RendererHandle для рекурсивного вычисления
            context: RenderContext текущего вызова

        Returns:
            Фрагменты вывода в нужном порядке
        """
        pass


class PredicateHandler(TagHandler):
    """
    Обработчик, производящий булево значение.

    Только такие обработчики допустимы в условии формы if.
    Вне условия предикат рендерится как "true" или "false".
    """

    @abstractmethod
    def test(
        self,
        attributes: AttributeSet,
        children: Sequence[ExprNode],
        renderer: Any,
        context: Any,
    ) -> bool:
        pass

    def evaluate(self, attributes, children, renderer, context) -> List[str]:
        return ["true" if self.test(attributes, children, renderer, context) else "false"]


class FunctionHandler(TagHandler):
    """Адаптер для обычной функции (attributes, children, renderer, context) -> фрагменты."""

    def __init__(self, func: Callable[..., Any]):
        self.func = func

    def evaluate(self, attributes, children, renderer, context) -> List[str]:
        return self.func(attributes, children, renderer, context)

    def __repr__(self) -> str:
        return f"FunctionHandler({getattr(self.func, '__name__', self.func)!r})"


class FunctionPredicate(PredicateHandler):
    """Адаптер для функции-предиката (attributes, children, renderer, context) -> bool."""

    def __init__(self, func: Callable[..., Any]):
        self.func = func

    def test(self, attributes, children, renderer, context) -> bool:
        return bool(self.func(attributes, children, renderer, context))

    def __repr__(self) -> str:
        return f"FunctionPredicate({getattr(self.func, '__name__', self.func)!r})"


HandlerLike = Union[TagHandler, Callable[..., Any]]


def predicate(func: Callable[..., Any]) -> FunctionPredicate:
    """Оборачивает функцию в предикат (можно использовать как декоратор)."""
    return FunctionPredicate(func)


def as_handler(obj: HandlerLike) -> TagHandler:
    """
    Приводит объект к TagHandler.

    Raises:
        TypeError: Если объект не является обработчиком или вызываемым
    """
    if isinstance(obj, TagHandler):
        return obj
    if callable(obj):
        return FunctionHandler(obj)
    raise TypeError(f"Tag handler must be a TagHandler or a callable, got {type(obj).__name__}")


class FunctionRegistry(Mapping[str, TagHandler]):
    """
    Неизменяемое отображение имени тега на обработчик.

    Безопасно разделяется между параллельными рендерами.
    """

    def __init__(self, handlers: Optional[Mapping[str, HandlerLike]] = None):
        """
        Args:
            handlers: Имя тега -> TagHandler или функция

        Raises:
            ValueError: При попытке зарегистрировать управляющую форму
        """
        table: Dict[str, TagHandler] = {}
        for name, handler in (handlers or {}).items():
            if name in CONTROL_FORMS:
                raise ValueError(f"'{name}' is a built-in control form and cannot be registered")
            table[name] = as_handler(handler)
        self._handlers = MappingProxyType(table)
        logger.debug(f"FunctionRegistry created with {len(table)} handlers")

    def __getitem__(self, name: str) -> TagHandler:
        return self._handlers[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._handlers)

    def __len__(self) -> int:
        return len(self._handlers)

    def get_handler(self, name: str) -> Optional[TagHandler]:
        return self._handlers.get(name)

    def is_predicate(self, name: str) -> bool:
        return isinstance(self._handlers.get(name), PredicateHandler)

    def with_functions(self, functions: Mapping[str, HandlerLike]) -> "FunctionRegistry":
        """Возвращает новый реестр с добавленными (или замененными) обработчиками."""
        merged: Dict[str, HandlerLike] = dict(self._handlers)
        merged.update(functions)
        return FunctionRegistry(merged)

    def __repr__(self) -> str:
        return f"FunctionRegistry({sorted(self._handlers)!r})"


def create_registry(functions: Optional[Mapping[str, HandlerLike]] = None,
                    include_builtins: bool = True) -> FunctionRegistry:
    """
    Создает реестр: встроенные предикаты плюс пользовательские функции.

    Пользовательская функция может заменить встроенный предикат
    (с предупреждением в логе), но не управляющую форму.

    Args:
        functions: Пользовательские обработчики
        include_builtins: Регистрировать ли is-set, eq, ne, not, and, or
    """
    from .builtins import BUILTIN_PREDICATES

    handlers: Dict[str, HandlerLike] = dict(BUILTIN_PREDICATES) if include_builtins else {}
    for name, handler in (functions or {}).items():
        if name in handlers:
            logger.warning(f"Handler for '{name}' overrides built-in predicate")
        handlers[name] = handler

    return FunctionRegistry(handlers)


__all__ = [
    "CONTROL_FORMS",
    "TagHandler",
    "PredicateHandler",
    "FunctionHandler",
    "FunctionPredicate",
    "HandlerLike",
    "FunctionRegistry",
    "as_handler",
    "predicate",
    "create_registry",
]
