"""
Неизменяемое значение шаблона.

Шаблон разбирается один раз и затем может рендериться сколько угодно раз,
в том числе параллельно, с независимыми контекстами.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

from .nodes import TagNode, VariableNode, walk
from .parser import TemplateParser


@dataclass(frozen=True)
class Template:
    """
    Разобранный шаблон.

    Attributes:
        root: Корневая форма
        name: Необязательное имя для диагностики
    """
    root: TagNode
    name: str = ""

    @classmethod
    def parse(cls, text: str, name: str = "") -> "Template":
        """
        Разбирает текст шаблона.

        Raises:
            LexError: При незакрытой строке
            ParseError: При синтаксической ошибке
        """
        return cls(root=TemplateParser().parse(text), name=name)

    def to_sexpr(self) -> str:
        """Каноническое S-выражение шаблона (повторный разбор дает равный AST)."""
        return self.root.to_sexpr()

    def variables(self) -> List[str]:
        """Имена переменных верхнего уровня, упомянутых как $name, в порядке появления."""
        names: List[str] = []
        for node in walk(self.root):
            if isinstance(node, VariableNode) and node.path[0] not in names:
                names.append(node.path[0])
        return names

    def __str__(self) -> str:
        return self.to_sexpr()


def parse_template(text: str, name: str = "") -> Template:
    """Точка входа разбора: текст шаблона -> Template."""
    return Template.parse(text, name)


__all__ = ["Template", "parse_template"]
