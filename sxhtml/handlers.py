"""
Протокол рендерера для пользовательских обработчиков тегов.

Определяет типизированный интерфейс, через который обработчики вызывают
функции ядра (рекурсивное вычисление детей, рендер других шаблонов,
разрешение атрибутов), не завися от конкретного класса Renderer.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional, Protocol, Sequence, runtime_checkable

from .nodes import AttributeSet, ExprNode

if TYPE_CHECKING:
    from .context import RenderContext
    from .template import Template


@runtime_checkable
class RendererHandle(Protocol):
    """
    Протокол рендерера, передаваемого в обработчики.

    Рендерер неизменяем и может одновременно использоваться
    несколькими рендерами; обработчики не должны пытаться его изменить.
    """

    def evaluate(self, node: ExprNode, context: "RenderContext") -> List[str]:
        """
        Вычисляет один узел.

        Returns:
            Упорядоченные фрагменты вывода
        """
        ...

    def evaluate_multiple(self, nodes: Sequence[ExprNode], context: "RenderContext") -> List[str]:
        """
        Вычисляет узлы по порядку и склеивает их фрагменты в один список.

        Используется обработчиками для рендера собственных невычисленных детей.
        """
        ...

    def evaluate_text(self, node: ExprNode, context: "RenderContext") -> str:
        """Вычисляет узел и возвращает его вывод одной строкой."""
        ...

    def evaluate_value(self, node: ExprNode, context: "RenderContext") -> str:
        """Текст узла без экранирования подставленных значений (для сравнений)."""
        ...

    def test(self, node: ExprNode, context: "RenderContext") -> bool:
        """
        Вычисляет форму-предикат.

        Raises:
            InvalidConditionError: Если узел не является предикатом
        """
        ...

    def resolve_attribute(self, attributes: AttributeSet, key: str,
                          context: "RenderContext") -> Optional[str]:
        """Значение атрибута после подстановки переменных или None, если атрибута нет."""
        ...

    def render(self, template: "Template", context: Optional["RenderContext"] = None) -> str:
        """Рендерит отдельный шаблон (композиция шаблонов внутри обработчика)."""
        ...


__all__ = ["RendererHandle"]
