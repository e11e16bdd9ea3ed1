"""
Вывод HTML-элементов.

Обычный тег выводится как <tag attrs>дети</tag>, void-элемент
(br, img, ...) как <tag attrs />. Атрибуты выводятся в порядке записи.
"""

from __future__ import annotations

import html
from typing import TYPE_CHECKING, Iterable, List, Tuple

from .errors import VoidElementError
from .nodes import TagNode

if TYPE_CHECKING:
    from .context import RenderContext
    from .renderer import Renderer


def escape(text: str) -> str:
    """Экранирование для текста и значений атрибутов."""
    return html.escape(text, quote=True)


def format_attributes(pairs: Iterable[Tuple[str, str]]) -> str:
    """Пары (ключ, значение) -> ' k="v"' для каждой пары."""
    return "".join(f' {key}="{value}"' for key, value in pairs)


def render_element(renderer: "Renderer", node: TagNode, context: "RenderContext") -> List[str]:
    """
    Выводит тег без обработчика как HTML-элемент.

    Raises:
        VoidElementError: Если у void-элемента есть дети
    """
    pairs = []
    if node.attributes is not None:
        pairs = [(attr.key, renderer.attribute_text(attr.value, context)) for attr in node.attributes]
    attrs = format_attributes(pairs)

    if node.name in renderer.config.void_elements:
        if node.children:
            raise VoidElementError(node.name)
        return [f"<{node.name}{attrs} />"]

    parts = [f"<{node.name}{attrs}>"]
    parts.extend(renderer.evaluate_multiple(node.children, context))
    parts.append(f"</{node.name}>")
    return parts


__all__ = ["escape", "format_attributes", "render_element"]
