"""
Шаблонизатор HTML на S-выражениях.

Шаблон записывается как вложенные формы (tag (@ (attr value)) дети...),
разбирается один раз в неизменяемое дерево и рендерится в HTML-строку
с контекстом переменных и пользовательскими функциями.
"""

from __future__ import annotations

from .config import RendererConfig, load_renderer_config
from .context import ContextBuilder, RenderContext, context_from_yaml
from .errors import (
    ConfigError,
    EmptyFormError,
    HandlerError,
    InvalidAttributeBlockError,
    InvalidConditionError,
    LexError,
    MalformedControlFormError,
    ParseError,
    ParseErrorKind,
    RecursionLimitExceededError,
    RenderError,
    SxhtmlError,
    TemplateSyntaxError,
    TypeMismatchError,
    UnbalancedParensError,
    UndefinedVariableError,
    UnexpectedTokenError,
    VoidElementError,
)
from .handlers import RendererHandle
from .nodes import Attribute, AttributeSet, ExprNode, LiteralNode, TagNode, VariableNode
from .parser import TemplateParser, parse
from .registry import (
    FunctionHandler,
    FunctionPredicate,
    FunctionRegistry,
    PredicateHandler,
    TagHandler,
    create_registry,
    predicate,
)
from .renderer import Renderer, create_renderer
from .template import Template, parse_template
from .values import ListValue, MapValue, Scalar, Value, to_value
from .version import tool_version

__all__ = [
    # Разбор
    "parse",
    "parse_template",
    "Template",
    "TemplateParser",
    "ExprNode",
    "LiteralNode",
    "VariableNode",
    "TagNode",
    "Attribute",
    "AttributeSet",
    # Значения и контекст
    "Value",
    "Scalar",
    "ListValue",
    "MapValue",
    "to_value",
    "RenderContext",
    "ContextBuilder",
    "context_from_yaml",
    # Рендеринг
    "Renderer",
    "RendererConfig",
    "RendererHandle",
    "create_renderer",
    "load_renderer_config",
    "TagHandler",
    "PredicateHandler",
    "FunctionHandler",
    "FunctionPredicate",
    "FunctionRegistry",
    "create_registry",
    "predicate",
    # Ошибки
    "SxhtmlError",
    "ConfigError",
    "TemplateSyntaxError",
    "LexError",
    "ParseError",
    "ParseErrorKind",
    "UnexpectedTokenError",
    "UnbalancedParensError",
    "EmptyFormError",
    "InvalidAttributeBlockError",
    "RenderError",
    "UndefinedVariableError",
    "TypeMismatchError",
    "InvalidConditionError",
    "MalformedControlFormError",
    "HandlerError",
    "RecursionLimitExceededError",
    "VoidElementError",
    "tool_version",
]
