"""
Иерархия исключений шаблонизатора.

Все ожидаемые ошибки, которые нужно показать пользователю чистым сообщением
(без трассировки стека), наследуются от SxhtmlError.

Ошибки программирования и баги НЕ должны наследоваться от SxhtmlError:
они пробрасываются с полной трассировкой.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional


class SxhtmlError(Exception):
    """
    Базовый класс для всех пользовательских ошибок шаблонизатора.

    Такие ошибки пользователь может исправить сам: синтаксис шаблона,
    отсутствующие переменные, неверная конфигурация и т.п.
    """
    pass


class ConfigError(SxhtmlError):
    """Некорректная конфигурация рендерера или данные контекста."""
    pass


# -------------------- Синтаксические ошибки --------------------

class TemplateSyntaxError(SxhtmlError):
    """Ошибка разбора исходного текста шаблона с позицией в тексте."""

    def __init__(self, message: str, line: int = 0, column: int = 0, position: int = 0):
        if line:
            super().__init__(f"{message} at {line}:{column}")
        else:
            super().__init__(message)
        self.message = message
        self.line = line
        self.column = column
        self.position = position


class LexError(TemplateSyntaxError):
    """Ошибка лексического анализа (незакрытая строка)."""
    pass


class ParseErrorKind(enum.Enum):
    """Вид синтаксической ошибки."""
    UNEXPECTED_TOKEN = "unexpected_token"
    UNBALANCED_PARENS = "unbalanced_parens"
    EMPTY_FORM = "empty_form"
    INVALID_ATTRIBUTE_BLOCK = "invalid_attribute_block"


class ParseError(TemplateSyntaxError):
    """Базовая ошибка синтаксического анализа."""
    kind: ParseErrorKind = ParseErrorKind.UNEXPECTED_TOKEN


class UnexpectedTokenError(ParseError):
    kind = ParseErrorKind.UNEXPECTED_TOKEN


class UnbalancedParensError(ParseError):
    kind = ParseErrorKind.UNBALANCED_PARENS


class EmptyFormError(ParseError):
    kind = ParseErrorKind.EMPTY_FORM


class InvalidAttributeBlockError(ParseError):
    kind = ParseErrorKind.INVALID_ATTRIBUTE_BLOCK


# -------------------- Ошибки рендеринга --------------------

class RenderError(SxhtmlError):
    """Базовый класс ошибок, возникающих при вычислении шаблона."""
    pass


@dataclass
class UndefinedVariableError(RenderError):
    """Переменная, на которую ссылается шаблон, не связана в контексте."""
    name: str

    def __str__(self) -> str:
        return f"Undefined variable '${self.name}'"


@dataclass
class TypeMismatchError(RenderError):
    """Вид значения отличается от того, что требует конструкция."""
    expected: str
    found: str
    name: str = ""

    def __str__(self) -> str:
        subject = f" for '${self.name}'" if self.name else ""
        return f"Type mismatch{subject}: expected {self.expected}, found {self.found}"


@dataclass
class InvalidConditionError(RenderError):
    """Условие `if` не является формой-предикатом."""
    form: str

    def __str__(self) -> str:
        return f"Invalid condition: {self.form} is not a predicate form"


@dataclass
class MalformedControlFormError(RenderError):
    """Управляющая форма имеет структуру, которую нельзя вычислить."""
    form: str
    reason: str

    def __str__(self) -> str:
        return f"Malformed '{self.form}' form: {self.reason}"


@dataclass
class HandlerError(RenderError):
    """Пользовательский обработчик упал с собственным (не RenderError) исключением."""
    tag: str
    inner: BaseException

    def __str__(self) -> str:
        return f"Handler for '{self.tag}' failed: {self.inner}"


@dataclass
class RecursionLimitExceededError(RenderError):
    """Вложенность вызовов обработчиков и рендеров превысила заданный предел."""
    limit: int
    tag: Optional[str] = None

    def __str__(self) -> str:
        where = f" while evaluating '{self.tag}'" if self.tag else ""
        return f"Recursion limit of {self.limit} nested handler calls exceeded{where}"


@dataclass
class VoidElementError(RenderError):
    """Тело передано void-элементу (например, `br`)."""
    tag: str

    def __str__(self) -> str:
        return f"Void element '{self.tag}' cannot have children"


__all__ = [
    "SxhtmlError",
    "ConfigError",
    "TemplateSyntaxError",
    "LexError",
    "ParseErrorKind",
    "ParseError",
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
]
