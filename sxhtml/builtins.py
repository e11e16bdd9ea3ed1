"""
Встроенные формы: управляющие (if, for, switch, case) и предикаты
(is-set, eq, ne, not, and, or).

Управляющие формы получают невычисленных детей и сами решают,
какие из них и сколько раз вычислять.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Sequence

from .errors import MalformedControlFormError, TypeMismatchError
from .nodes import AttributeSet, ExprNode, LiteralNode, TagNode, VariableNode
from .registry import PredicateHandler
from .values import ListValue, MapValue, Scalar

if TYPE_CHECKING:
    from .context import RenderContext
    from .renderer import Renderer

logger = logging.getLogger(__name__)

_LOOP_NAME = re.compile(r'[A-Za-z_][\w-]*')


# -------------------- Управляющие формы --------------------

def evaluate_if(renderer: "Renderer", node: TagNode, context: "RenderContext") -> List[str]:
    """(if <предикат> <then> [<else>])"""
    children = node.children
    if len(children) < 2:
        raise MalformedControlFormError("if", "expected a condition and a body")
    if len(children) > 3:
        raise MalformedControlFormError("if", "expected at most a condition, a body and an else-branch")

    if renderer.test(children[0], context):
        return renderer.evaluate(children[1], context)
    if len(children) == 3:
        return renderer.evaluate(children[2], context)
    return []


def _loop_name(node: ExprNode, form: str = "for") -> str:
    if not isinstance(node, LiteralNode) or not _LOOP_NAME.fullmatch(node.text):
        raise MalformedControlFormError(form, f"loop variable must be a bare name, got {node}")
    return node.text


def _find_in(children: Sequence[ExprNode]) -> Optional[int]:
    for index in (1, 2):
        if len(children) > index:
            child = children[index]
            if isinstance(child, LiteralNode) and child.text == "in":
                return index
    return None


def evaluate_for(renderer: "Renderer", node: TagNode, context: "RenderContext") -> List[str]:
    """
    Итерация по списку или словарю.

    Формы:
        (for item in $list body...)
        (for key value in $map body...)
        (for (@ (var item) (iterate $list) (index i)) body...)
        (for (@ (key k) (value v) (iterate $map)) body...)
        (for (@ (var i) (min 0) (max 10) (step 2)) body...)
    """
    if node.attributes is not None:
        return _evaluate_for_attributes(renderer, node, context)

    children = node.children
    in_index = _find_in(children)
    if in_index is None:
        raise MalformedControlFormError("for", "expected 'for <name> in $collection' or an attribute block")

    names = [_loop_name(child) for child in children[:in_index]]
    if in_index + 1 >= len(children):
        raise MalformedControlFormError("for", "missing collection after 'in'")
    source = children[in_index + 1]
    if not isinstance(source, VariableNode):
        raise MalformedControlFormError("for", f"collection must be a variable, got {source}")
    body = children[in_index + 2:]

    collection = context.resolve(source.name)
    output: List[str] = []

    if len(names) == 1:
        if not isinstance(collection, ListValue):
            raise TypeMismatchError(expected="list", found=collection.kind, name=source.name)
        for item in collection:
            output.extend(renderer.evaluate_multiple(body, context.child({names[0]: item})))
    else:
        if not isinstance(collection, MapValue):
            raise TypeMismatchError(expected="map", found=collection.kind, name=source.name)
        key_name, value_name = names
        for key, value in collection:
            scope = context.child({key_name: Scalar(key), value_name: value})
            output.extend(renderer.evaluate_multiple(body, scope))

    return output


def _attribute_name(attrs: AttributeSet, key: str, required: bool = True) -> Optional[str]:
    value = attrs.get(key)
    if value is None:
        if required:
            raise MalformedControlFormError("for", f"missing '{key}' attribute")
        return None
    return _loop_name(value)


def _attribute_int(renderer: "Renderer", attrs: AttributeSet, key: str, context: "RenderContext") -> int:
    text = renderer.attribute_text(attrs.get(key), context, autoescape=False)
    try:
        return int(text.strip())
    except ValueError:
        raise TypeMismatchError(expected="integer", found=f"'{text}' in '{key}'") from None


def _evaluate_for_attributes(renderer: "Renderer", node: TagNode, context: "RenderContext") -> List[str]:
    attrs = node.attributes
    body = node.children
    output: List[str] = []

    if "min" in attrs or "max" in attrs:
        if "min" not in attrs or "max" not in attrs:
            raise MalformedControlFormError("for", "range iteration needs both 'min' and 'max'")
        var = _attribute_name(attrs, "var")
        start = _attribute_int(renderer, attrs, "min", context)
        stop = _attribute_int(renderer, attrs, "max", context)
        step = _attribute_int(renderer, attrs, "step", context) if "step" in attrs else 1
        if step <= 0:
            raise MalformedControlFormError("for", f"'step' must be positive, got {step}")
        for i in range(start, stop, step):
            output.extend(renderer.evaluate_multiple(body, context.child({var: Scalar(str(i))})))
        return output

    source = attrs.get("iterate")
    if source is None:
        raise MalformedControlFormError("for", "missing 'iterate' or 'min'/'max' attributes")
    if not isinstance(source, VariableNode):
        raise MalformedControlFormError("for", f"'iterate' must be a variable, got {source}")

    collection = context.resolve(source.name)

    if isinstance(collection, ListValue):
        var = _attribute_name(attrs, "var")
        index = _attribute_name(attrs, "index", required=False)
        for position, item in enumerate(collection):
            bindings = {var: item}
            if index is not None:
                bindings[index] = Scalar(str(position))
            output.extend(renderer.evaluate_multiple(body, context.child(bindings)))
    elif isinstance(collection, MapValue):
        key_name = _attribute_name(attrs, "key")
        value_name = _attribute_name(attrs, "value")
        for key, value in collection:
            scope = context.child({key_name: Scalar(key), value_name: value})
            output.extend(renderer.evaluate_multiple(body, scope))
    else:
        raise TypeMismatchError(expected="list or map", found=collection.kind, name=source.name)

    return output


def evaluate_switch(renderer: "Renderer", node: TagNode, context: "RenderContext") -> List[str]:
    """
    (switch <значение> (case <метка> body...) ...)

    Выводится тело первого case, метка которого совпала со значением;
    без совпадений вывод пустой.
    """
    if not node.children:
        raise MalformedControlFormError("switch", "missing value to switch on")

    cases = node.children[1:]
    for case in cases:
        if not isinstance(case, TagNode) or case.name != "case":
            raise MalformedControlFormError("switch", f"expected only 'case' forms, got {case}")
        if not case.children:
            raise MalformedControlFormError("case", "missing label")

    scrutinee = renderer.evaluate_value(node.children[0], context)
    for case in cases:
        label = renderer.evaluate_value(case.children[0], context)
        if label == scrutinee:
            return renderer.evaluate_multiple(case.children[1:], context)

    logger.debug(f"switch: no case matched '{scrutinee}'")
    return []


def evaluate_case(renderer: "Renderer", node: TagNode, context: "RenderContext") -> List[str]:
    raise MalformedControlFormError("case", "only valid as a direct child of 'switch'")


ControlForm = Callable[["Renderer", TagNode, "RenderContext"], List[str]]

CONTROL_FORM_HANDLERS: Dict[str, ControlForm] = {
    "if": evaluate_if,
    "for": evaluate_for,
    "switch": evaluate_switch,
    "case": evaluate_case,
}


# -------------------- Предикаты --------------------

class IsSetPredicate(PredicateHandler):
    """(is-set $name): имя (или путь через точки) связано в контексте."""

    def test(self, attributes, children, renderer, context) -> bool:
        if len(children) != 1 or not isinstance(children[0], VariableNode):
            raise MalformedControlFormError("is-set", "expected exactly one variable")
        return context.is_set(children[0].name)


class EqPredicate(PredicateHandler):
    """(eq a b): текстовое равенство вычисленных операндов."""

    form = "eq"

    def test(self, attributes, children, renderer, context) -> bool:
        if len(children) != 2:
            raise MalformedControlFormError(self.form, f"expected 2 operands, got {len(children)}")
        left, right = (renderer.evaluate_value(child, context) for child in children)
        return left == right


class NePredicate(EqPredicate):
    form = "ne"

    def test(self, attributes, children, renderer, context) -> bool:
        return not super().test(attributes, children, renderer, context)


class NotPredicate(PredicateHandler):
    def test(self, attributes, children, renderer, context) -> bool:
        if len(children) != 1:
            raise MalformedControlFormError("not", f"expected 1 condition, got {len(children)}")
        return not renderer.test(children[0], context)


class AndPredicate(PredicateHandler):
    def test(self, attributes, children, renderer, context) -> bool:
        if not children:
            raise MalformedControlFormError("and", "expected at least one condition")
        return all(renderer.test(child, context) for child in children)


class OrPredicate(PredicateHandler):
    def test(self, attributes, children, renderer, context) -> bool:
        if not children:
            raise MalformedControlFormError("or", "expected at least one condition")
        return any(renderer.test(child, context) for child in children)


BUILTIN_PREDICATES: Dict[str, PredicateHandler] = {
    "is-set": IsSetPredicate(),
    "eq": EqPredicate(),
    "ne": NePredicate(),
    "not": NotPredicate(),
    "and": AndPredicate(),
    "or": OrPredicate(),
}


__all__ = [
    "CONTROL_FORM_HANDLERS",
    "BUILTIN_PREDICATES",
    "IsSetPredicate",
    "EqPredicate",
    "NePredicate",
    "NotPredicate",
    "AndPredicate",
    "OrPredicate",
]
