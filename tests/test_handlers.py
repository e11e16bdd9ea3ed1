"""
Tests for custom tag handlers and the function registry.
"""

from concurrent.futures import ThreadPoolExecutor

import pytest

from sxhtml import (
    FunctionHandler,
    FunctionRegistry,
    PredicateHandler,
    RenderContext,
    Renderer,
    RendererConfig,
    RendererHandle,
    TagHandler,
    Template,
    create_registry,
    create_renderer,
    predicate,
)
from sxhtml.errors import (
    HandlerError,
    InvalidConditionError,
    RecursionLimitExceededError,
    UndefinedVariableError,
)
from sxhtml.nodes import LiteralNode, VariableNode


def render_with(functions, source, config=None, **data):
    renderer = create_renderer(functions, config)
    return renderer.render(Template.parse(source), RenderContext(data))


def wrap_children(attributes, children, renderer, context):
    return renderer.evaluate_multiple(children, context)


class TestCustomHandlers:

    def test_closure_handler(self):
        greeting = "Hello"

        def greet(attributes, children, renderer, context):
            return [f"{greeting}, ", *renderer.evaluate_multiple(children, context), "!"]

        assert render_with({"greet": greet}, "(p (greet $name))", name="Ann") == "<p>Hello, Ann!</p>"

    def test_receives_unevaluated_children_and_attributes(self):
        seen = {}

        def spy(attributes, children, renderer, context):
            seen["attributes"] = [(a.key, a.value) for a in attributes]
            seen["children"] = children
            return []

        render_with({"spy": spy}, '(spy (@ (id $x) (class c)) $missing "text $y" (b))')
        assert seen["attributes"] == [("id", VariableNode("x")), ("class", LiteralNode("c"))]
        assert [type(c).__name__ for c in seen["children"]] == ["VariableNode", "LiteralNode", "TagNode"]

    def test_no_attribute_block_gives_empty_set(self):
        def count(attributes, children, renderer, context):
            return [str(len(attributes))]

        assert render_with({"count": count}, "(p (count))") == "<p>0</p>"

    def test_fragments_in_returned_order(self):
        def parts(attributes, children, renderer, context):
            return ["c", "a", "b"]

        assert render_with({"parts": parts}, "(p x (parts) y)") == "<p>xcaby</p>"

    def test_string_result_is_one_fragment(self):
        assert render_with({"one": lambda *args: "only"}, "(p (one))") == "<p>only</p>"

    def test_resolve_attribute(self):
        def link(attributes, children, renderer, context):
            href = renderer.resolve_attribute(attributes, "to", context)
            missing = renderer.resolve_attribute(attributes, "nope", context)
            return [f'<a href="{href}">', str(missing), "</a>"]

        html = render_with({"link": link}, '(link (@ (to "/u/$id")))', id="7")
        assert html == '<a href="/u/7">None</a>'

    def test_child_context_bindings(self):
        def with_user(attributes, children, renderer, context):
            name = renderer.resolve_attribute(attributes, "name", context)
            return renderer.evaluate_multiple(children, context.child({"user": name}))

        html = render_with({"with-user": with_user}, "(p (with-user (@ (name Ann)) (b $user)))")
        assert html == "<p><b>Ann</b></p>"

    def test_child_context_does_not_leak(self):
        def bind(attributes, children, renderer, context):
            return renderer.evaluate_multiple(children, context.child({"tmp": "1"}))

        with pytest.raises(UndefinedVariableError):
            render_with({"bind": bind}, "(p (bind $tmp) $tmp)")

    def test_composition_with_subtemplate(self):
        layout = Template.parse('(div (@ (class card)) (h2 $title) "$body")', name="card")

        def card(attributes, children, renderer, context):
            body = "".join(renderer.evaluate_multiple(children, context))
            title = renderer.resolve_attribute(attributes, "title", context)
            return [renderer.render(layout, RenderContext({"title": title, "body": body}))]

        html = render_with({"card": card}, "(section (card (@ (title $t)) inner text))", t="News")
        assert html == '<section><div class="card"><h2>News</h2>innertext</div></section>'

    def test_handler_receives_renderer_handle(self):
        def check(attributes, children, renderer, context):
            return [str(isinstance(renderer, RendererHandle))]

        assert render_with({"check": check}, "(p (check))") == "<p>True</p>"

    def test_class_based_handler(self):
        class Repeat(TagHandler):
            def evaluate(self, attributes, children, renderer, context):
                times = int(renderer.resolve_attribute(attributes, "times", context))
                return renderer.evaluate_multiple(children, context) * times

        assert render_with({"repeat": Repeat()}, "(p (repeat (@ (times 3)) ab))") == "<p>ababab</p>"

    def test_handler_shadows_html_element(self):
        assert render_with({"div": lambda *args: ["custom"]}, "(p (div x))") == "<p>custom</p>"

    def test_bindings_do_not_leak_to_siblings(self):
        """Связывания обработчика не видны соседним формам"""
        def setter(attributes, children, renderer, context):
            context.bind("i", "changed")
            return []

        html = render_with({"setter": setter}, "(p (for i in $items (setter) $i))", items=["a", "b"])
        assert html == "<p>ab</p>"

    def test_unpopped_scope_does_not_leak(self):
        def opener(attributes, children, renderer, context):
            context.push_scope()
            context.bind("x", "inner")
            return renderer.evaluate_multiple(children, context)

        html = render_with({"opener": opener}, "(p (opener $x) $x)", x="outer")
        assert html == "<p>innerouter</p>"


class TestHandlerErrors:

    def test_exception_is_wrapped(self):
        def broken(attributes, children, renderer, context):
            raise KeyError("boom")

        with pytest.raises(HandlerError) as exc:
            render_with({"broken": broken}, "(p (broken))")
        assert exc.value.tag == "broken"
        assert isinstance(exc.value.inner, KeyError)
        assert exc.value.__cause__ is exc.value.inner

    def test_render_error_propagates_unchanged(self):
        def passthrough(attributes, children, renderer, context):
            return renderer.evaluate_multiple(children, context)

        with pytest.raises(UndefinedVariableError):
            render_with({"pass": passthrough}, "(p (pass $missing))")

    def test_non_string_fragment(self):
        with pytest.raises(HandlerError):
            render_with({"bad": lambda *args: [1, 2]}, "(p (bad))")

    def test_none_result_is_empty(self):
        assert render_with({"nothing": lambda *args: None}, "(p (nothing))") == "<p></p>"


class TestCustomPredicates:

    def test_function_predicate(self):
        @predicate
        def is_admin(attributes, children, renderer, context):
            return renderer.evaluate_text(children[0], context) == "admin"

        source = "(p (if (is-admin $role) yes no))"
        assert render_with({"is-admin": is_admin}, source, role="admin") == "<p>yes</p>"
        assert render_with({"is-admin": is_admin}, source, role="user") == "<p>no</p>"

    def test_class_predicate(self):
        class NonEmpty(PredicateHandler):
            def test(self, attributes, children, renderer, context):
                value = context.lookup(children[0].name)
                return value is not None and len(value) > 0

        source = "(p (if (non-empty $items) (for i in $items $i) empty))"
        assert render_with({"non-empty": NonEmpty()}, source, items=["a"]) == "<p>a</p>"
        assert render_with({"non-empty": NonEmpty()}, source, items=[]) == "<p>empty</p>"

    def test_plain_handler_is_not_a_condition(self):
        with pytest.raises(InvalidConditionError):
            render_with({"yes": lambda *args: ["true"]}, "(p (if (yes) a b))")

    def test_predicate_errors_are_wrapped(self):
        @predicate
        def broken(attributes, children, renderer, context):
            raise ValueError("bad")

        with pytest.raises(HandlerError):
            render_with({"broken": broken}, "(p (if (broken) a))")


class TestRegistry:

    def test_builtin_predicates_present(self):
        registry = create_registry()
        assert set(registry) == {"is-set", "eq", "ne", "not", "and", "or"}
        assert all(registry.is_predicate(name) for name in registry)

    def test_without_builtins(self):
        assert len(create_registry(include_builtins=False)) == 0

    def test_callables_are_wrapped(self):
        registry = FunctionRegistry({"f": lambda *args: []})
        assert isinstance(registry["f"], FunctionHandler)
        assert registry.get_handler("missing") is None

    def test_control_forms_cannot_be_registered(self):
        for name in ("if", "for", "switch", "case"):
            with pytest.raises(ValueError):
                create_renderer({name: lambda *args: []})

    def test_invalid_handler(self):
        with pytest.raises(TypeError):
            FunctionRegistry({"x": 42})

    def test_override_builtin_predicate_warns(self, caplog):
        @predicate
        def always(attributes, children, renderer, context):
            return True

        with caplog.at_level("WARNING", logger="sxhtml.registry"):
            registry = create_registry({"eq": always})
        assert registry["eq"] is always
        assert "overrides built-in predicate" in caplog.text

    def test_registry_is_read_only(self):
        registry = create_registry()
        with pytest.raises(TypeError):
            registry["new"] = lambda *args: []

    def test_with_functions_returns_new_registry(self):
        registry = create_registry()
        extended = registry.with_functions({"x": lambda *args: ["x"]})
        assert "x" in extended
        assert "x" not in registry

    def test_renderer_accepts_registry(self):
        registry = create_registry({"x": lambda *args: ["X"]})
        renderer = Renderer(registry)
        assert renderer.functions is registry
        assert renderer.render(Template.parse("(p (x))")) == "<p>X</p>"


class TestRecursionLimit:

    def test_self_rendering_handler(self):
        """Шаблон, который рендерит сам себя через обработчик, упирается в предел"""
        template = Template.parse("(div (loop))")

        def loop(attributes, children, renderer, context):
            return [renderer.render(template, context)]

        with pytest.raises(RecursionLimitExceededError) as exc:
            render_with({"loop": loop}, "(div (loop))")
        assert exc.value.limit == 64

    def test_configured_limit(self):
        config = RendererConfig(recursion_limit=3)
        functions = {"wrap": wrap_children}
        assert render_with(functions, "(a (wrap (wrap x)))", config=config) == "<a>x</a>"
        with pytest.raises(RecursionLimitExceededError) as exc:
            render_with(functions, "(a (wrap (wrap (wrap x))))", config=config)
        assert exc.value.limit == 3
        assert exc.value.tag == "wrap"

    def test_depth_resets_after_error(self):
        renderer = create_renderer({"wrap": wrap_children}, RendererConfig(recursion_limit=2))
        with pytest.raises(RecursionLimitExceededError):
            renderer.render(Template.parse("(wrap (wrap x))"))
        assert renderer.render(Template.parse("(wrap x)")) == "x"

    def test_plain_nesting_is_not_limited(self):
        """Глубокая вложенность обычных тегов не расходует предел"""
        source = "(div " * 100 + "x" + ")" * 100
        assert render_with({}, source) == "<div>" * 100 + "x" + "</div>" * 100

    def test_control_forms_and_predicates_in_deep_nesting(self):
        config = RendererConfig(recursion_limit=2)
        source = "(div " * 10 + "(if (and (not (eq $a b)) (is-set $a)) (for i in $l $i))" + ")" * 10
        html = render_with({}, source, config=config, a="a", l=["1", "2"])
        assert html == "<div>" * 10 + "12" + "</div>" * 10


class TestConcurrency:

    def test_shared_template_and_renderer(self):
        renderer = create_renderer()
        template = Template.parse("(ul (for i in $items (li $i)))")

        def job(n):
            items = [str(n)] * 3
            return renderer.render(template, RenderContext({"items": items}))

        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(job, range(20)))

        assert results == [f"<ul>{f'<li>{n}</li>' * 3}</ul>" for n in range(20)]
