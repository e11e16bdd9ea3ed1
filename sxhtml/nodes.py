"""
AST-узлы шаблона.

Определяет неизменяемые классы узлов дерева выражений. Управляющие формы
(if, for, switch, case) представлены обычными TagNode: особую семантику
им придает только имя тега при вычислении.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterator, Optional, Tuple

# Текст, который можно вывести голым атомом без кавычек
_BARE_ATOM = re.compile(r'[^\s()"$\\]+')


def quote_string(text: str) -> str:
    """Выводит текст как строковый литерал с экранированием \\ и \"."""
    escaped = text.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def format_atom(text: str) -> str:
    """Выводит литеральный текст в каноническом виде: голым атомом, если можно."""
    if text != "@" and _BARE_ATOM.fullmatch(text):
        return text
    return quote_string(text)


@dataclass(frozen=True)
class ExprNode:
    """Базовый класс для всех узлов AST шаблона."""

    def to_sexpr(self) -> str:
        """Каноническое представление узла в виде S-выражения."""
        raise NotImplementedError

    def __str__(self) -> str:
        return self.to_sexpr()


@dataclass(frozen=True)
class LiteralNode(ExprNode):
    """
    Литеральный текст: строка в кавычках или голый атом.

    Может содержать маркеры подстановки $name, которые раскрываются
    при вычислении (например, "posted by $author").
    """
    text: str

    def to_sexpr(self) -> str:
        return format_atom(self.text)


@dataclass(frozen=True)
class VariableNode(ExprNode):
    """Самостоятельная ссылка на переменную: $name или $name.key."""
    name: str

    @property
    def path(self) -> Tuple[str, ...]:
        """Путь доступа к значению: имя переменной и ключи вложенных словарей."""
        return tuple(self.name.split("."))

    def to_sexpr(self) -> str:
        return f"${self.name}"


@dataclass(frozen=True)
class Attribute:
    """Пара ключ-значение из блока атрибутов (@ ...)."""
    key: str
    value: ExprNode  # LiteralNode или VariableNode, не вычисленный

    @property
    def raw(self) -> str:
        """Значение в том виде, как оно записано (переменная - с '$')."""
        if isinstance(self.value, LiteralNode):
            return self.value.text
        return self.value.to_sexpr()

    def to_sexpr(self) -> str:
        return f"({self.key} {self.value.to_sexpr()})"


@dataclass(frozen=True)
class AttributeSet:
    """
    Упорядоченный набор атрибутов с уникальными ключами.

    Порядок вставки сохраняется: он определяет порядок вывода атрибутов
    HTML-элемента и порядок обхода в пользовательских обработчиках.
    """
    items: Tuple[Attribute, ...] = ()

    def __post_init__(self):
        seen = set()
        for attr in self.items:
            if attr.key in seen:
                raise ValueError(f"Duplicate attribute '{attr.key}'")
            seen.add(attr.key)

    def get(self, key: str) -> Optional[ExprNode]:
        """Невычисленное значение атрибута или None."""
        for attr in self.items:
            if attr.key == key:
                return attr.value
        return None

    def keys(self) -> Tuple[str, ...]:
        return tuple(attr.key for attr in self.items)

    def __contains__(self, key: object) -> bool:
        return any(attr.key == key for attr in self.items)

    def __iter__(self) -> Iterator[Attribute]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def to_sexpr(self) -> str:
        parts = ["@"] + [attr.to_sexpr() for attr in self.items]
        return "(" + " ".join(parts) + ")"


@dataclass(frozen=True)
class TagNode(ExprNode):
    """
    Форма (name (@ attrs...) children...).

    Attributes:
        name: Имя тега (первый атом формы)
        attributes: Блок атрибутов или None, если его нет
        children: Упорядоченные дочерние узлы
    """
    name: str
    attributes: Optional[AttributeSet] = None
    children: Tuple[ExprNode, ...] = ()

    def to_sexpr(self) -> str:
        parts = [self.name]
        if self.attributes is not None:
            parts.append(self.attributes.to_sexpr())
        parts.extend(child.to_sexpr() for child in self.children)
        return "(" + " ".join(parts) + ")"


def walk(node: ExprNode) -> Iterator[ExprNode]:
    """Обходит поддерево в порядке документа (узел, затем его потомки)."""
    yield node
    if isinstance(node, TagNode):
        if node.attributes is not None:
            for attr in node.attributes:
                yield attr.value
        for child in node.children:
            yield from walk(child)


__all__ = [
    "ExprNode",
    "LiteralNode",
    "VariableNode",
    "Attribute",
    "AttributeSet",
    "TagNode",
    "walk",
    "format_atom",
    "quote_string",
]
