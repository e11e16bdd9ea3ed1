"""
Рендерер шаблонов.

Рекурсивно вычисляет AST в контексте: литералы и переменные дают текст,
управляющие формы вычисляются ядром, теги с обработчиком передаются
в реестр, остальные теги выводятся как HTML-элементы.
"""

from __future__ import annotations

import logging
import re
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, List, Mapping, Optional, Sequence, Union

from .builtins import CONTROL_FORM_HANDLERS
from .config import RendererConfig
from .context import RenderContext
from .errors import (
    HandlerError,
    InvalidConditionError,
    RecursionLimitExceededError,
    RenderError,
    TypeMismatchError,
)
from .lexer import IDENTIFIER_PATTERN
from .markup import escape, render_element
from .nodes import AttributeSet, ExprNode, LiteralNode, TagNode, VariableNode
from .registry import FunctionRegistry, HandlerLike, PredicateHandler, TagHandler, create_registry
from .template import Template
from .values import Scalar

logger = logging.getLogger(__name__)

# $$ -> литеральный '$', $name / $a.b -> значение переменной
_INTERPOLATION = re.compile(r'\$\$|\$(' + IDENTIFIER_PATTERN + r')')

# Вложенность вызовов обработчиков и рендеров в текущем потоке/задаче
_depth: ContextVar[int] = ContextVar("sxhtml_render_depth", default=0)


class Renderer:
    """
    Рендерер: реестр функций плюс настройки.

    Неизменяем после создания, поэтому один экземпляр можно использовать
    из нескольких потоков одновременно.
    """

    def __init__(self, functions: Optional[Union[FunctionRegistry, Mapping[str, HandlerLike]]] = None,
                 config: Optional[RendererConfig] = None):
        """
        Args:
            functions: Готовый реестр или словарь имя -> обработчик
            config: Настройки (по умолчанию RendererConfig())
        """
        if isinstance(functions, FunctionRegistry):
            self._functions = functions
        else:
            self._functions = create_registry(functions)
        self._config = config or RendererConfig()
        logger.debug(f"Renderer created: {len(self._functions)} functions, config={self._config.to_dict()}")

    @property
    def functions(self) -> FunctionRegistry:
        return self._functions

    @property
    def config(self) -> RendererConfig:
        return self._config

    # -------------------- Публичный API --------------------

    def render(self, template: Union[Template, TagNode], context: Optional[RenderContext] = None) -> str:
        """
        Рендерит шаблон в строку.

        Если корень шаблона - тег html, перед ним выводится doctype.

        Raises:
            RenderError: При любой ошибке вычисления (частичный вывод не возвращается)
        """
        root = template.root if isinstance(template, Template) else template
        context = context if context is not None else RenderContext()

        with self._nested(root.name):
            parts = self.evaluate(root, context)
        if root.name == "html" and self._config.doctype:
            parts.insert(0, self._config.doctype)

        name = template.name if isinstance(template, Template) else ""
        logger.debug(f"Rendered template{f' {name!r}' if name else ''}: {len(parts)} fragments")
        return "".join(parts)

    def render_text(self, text: str, context: Optional[RenderContext] = None) -> str:
        """Разбор и рендер в один вызов."""
        return self.render(self.parse(text), context)

    @staticmethod
    def parse(text: str, name: str = "") -> Template:
        return Template.parse(text, name)

    def evaluate(self, node: ExprNode, context: RenderContext) -> List[str]:
        """Вычисляет один узел в упорядоченные фрагменты вывода."""
        if isinstance(node, LiteralNode):
            return [self.interpolate(node.text, context)]
        if isinstance(node, VariableNode):
            return [self._output(self.resolve_scalar(node.name, context))]
        if isinstance(node, TagNode):
            return self._evaluate_tag(node, context)
        raise TypeError(f"Unknown node type: {type(node).__name__}")

    def evaluate_multiple(self, nodes: Sequence[ExprNode], context: RenderContext) -> List[str]:
        parts: List[str] = []
        for node in nodes:
            parts.extend(self.evaluate(node, context))
        return parts

    def evaluate_text(self, node: ExprNode, context: RenderContext) -> str:
        return "".join(self.evaluate(node, context))

    def evaluate_value(self, node: ExprNode, context: RenderContext) -> str:
        """
        Текст узла для сравнения: подставленные значения не экранируются.

        Используется eq, ne и switch, чтобы результат не зависел от autoescape.
        """
        if isinstance(node, (LiteralNode, VariableNode)):
            return self.attribute_text(node, context, autoescape=False)
        return self.evaluate_text(node, context)

    def test(self, node: ExprNode, context: RenderContext) -> bool:
        """
        Вычисляет условие.

        Raises:
            InvalidConditionError: Если узел не является формой-предикатом
        """
        if not isinstance(node, TagNode):
            raise InvalidConditionError(node.to_sexpr())
        handler = self._functions.get_handler(node.name)
        if not isinstance(handler, PredicateHandler):
            raise InvalidConditionError(node.to_sexpr())
        return self._invoke(node, handler, context, predicate=True)

    # -------------------- Текст и переменные --------------------

    def interpolate(self, text: str, context: RenderContext, autoescape: bool = True) -> str:
        """
        Подставляет $name в литеральный текст; '$$' дает '$'.

        При autoescape=False подставленные значения не экранируются даже
        при включенной настройке рендерера.

        Raises:
            UndefinedVariableError: Переменная не связана
            TypeMismatchError: Значение не скалярное
        """
        if "$" not in text:
            return text

        def substitute(match: re.Match) -> str:
            name = match.group(1)
            if name is None:
                return "$"
            value = self.resolve_scalar(name, context)
            return self._output(value) if autoescape else value

        return _INTERPOLATION.sub(substitute, text)

    def resolve_scalar(self, name: str, context: RenderContext) -> str:
        """Текст скалярной переменной."""
        value = context.resolve(name)
        if not isinstance(value, Scalar):
            raise TypeMismatchError(expected="scalar", found=value.kind, name=name.lstrip("$"))
        return value.text

    def attribute_text(self, value: ExprNode, context: RenderContext, autoescape: bool = True) -> str:
        """
        Значение атрибута как текст.

        Args:
            value: LiteralNode (с подстановкой) или VariableNode
            autoescape: Применять ли экранирование из настроек к подставленным значениям
        """
        if isinstance(value, VariableNode):
            text = self.resolve_scalar(value.name, context)
            return self._output(text) if autoescape else text
        if isinstance(value, LiteralNode):
            return self.interpolate(value.text, context, autoescape)
        return self.evaluate_text(value, context)

    def resolve_attribute(self, attributes: Optional[AttributeSet], key: str,
                          context: RenderContext) -> Optional[str]:
        """Значение атрибута key после подстановки или None, если атрибута нет."""
        if attributes is None:
            return None
        value = attributes.get(key)
        if value is None:
            return None
        return self.attribute_text(value, context)

    def _output(self, text: str) -> str:
        return escape(text) if self._config.autoescape else text

    # -------------------- Теги --------------------

    def _evaluate_tag(self, node: TagNode, context: RenderContext) -> List[str]:
        control = CONTROL_FORM_HANDLERS.get(node.name)
        if control is not None:
            return control(self, node, context)

        handler = self._functions.get_handler(node.name)
        if handler is not None:
            return self._invoke(node, handler, context)

        return render_element(self, node, context)

    def _invoke(self, node: TagNode, handler: TagHandler, context: RenderContext, predicate: bool = False):
        attributes = node.attributes if node.attributes is not None else AttributeSet()
        # Каждый вызов получает собственную внутреннюю область
        scope = context.child()
        try:
            if predicate:
                return bool(handler.test(attributes, node.children, self, scope))
            with self._nested(node.name):
                result = handler.evaluate(attributes, node.children, self, scope)
        except RenderError:
            raise
        except Exception as e:
            logger.debug(f"Handler for '{node.name}' raised {type(e).__name__}: {e}")
            raise HandlerError(node.name, e) from e

        if isinstance(result, str):
            return [result]
        if result is None:
            return []
        parts = list(result)
        for part in parts:
            if not isinstance(part, str):
                raise HandlerError(node.name, TypeError(
                    f"handler must return strings, got {type(part).__name__}"
                ))
        return parts

    @contextmanager
    def _nested(self, tag: str) -> Iterator[None]:
        depth = _depth.get() + 1
        if depth > self._config.recursion_limit:
            raise RecursionLimitExceededError(self._config.recursion_limit, tag)
        token = _depth.set(depth)
        try:
            yield
        finally:
            _depth.reset(token)


def create_renderer(functions: Optional[Mapping[str, HandlerLike]] = None,
                    config: Optional[RendererConfig] = None) -> Renderer:
    """
    Создает рендерер с пользовательскими функциями.

    Args:
        functions: Имя тега -> TagHandler или функция
            (attributes, children, renderer, context) -> фрагменты
        config: Настройки рендерера

    Raises:
        ValueError: При попытке переопределить управляющую форму
    """
    return Renderer(create_registry(functions), config)


__all__ = ["Renderer", "create_renderer"]
