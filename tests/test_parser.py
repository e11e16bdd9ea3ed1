"""
Tests for the template parser.
"""

import pytest

from sxhtml.errors import (
    EmptyFormError,
    InvalidAttributeBlockError,
    ParseError,
    ParseErrorKind,
    UnbalancedParensError,
    UnexpectedTokenError,
)
from sxhtml.nodes import Attribute, AttributeSet, LiteralNode, TagNode, VariableNode
from sxhtml.parser import TemplateParser


class TestTemplateParser:

    def setup_method(self):
        self.parser = TemplateParser()

    def test_single_form(self):
        ast = self.parser.parse("(br)")
        assert ast == TagNode("br")
        assert ast.attributes is None
        assert ast.children == ()

    def test_nested_forms(self):
        ast = self.parser.parse('(html (head (title "basic example")))')
        assert ast == TagNode("html", children=(
            TagNode("head", children=(
                TagNode("title", children=(LiteralNode("basic example"),)),
            )),
        ))

    def test_children_kinds_in_order(self):
        ast = self.parser.parse('(div what "else" $x (span))')
        assert ast.children == (
            LiteralNode("what"),
            LiteralNode("else"),
            VariableNode("x"),
            TagNode("span"),
        )

    def test_attribute_block(self):
        ast = self.parser.parse('(a (@ (href "/home") (class $cls)) home)')
        assert ast.attributes == AttributeSet((
            Attribute("href", LiteralNode("/home")),
            Attribute("class", VariableNode("cls")),
        ))
        assert ast.attributes.keys() == ("href", "class")
        assert ast.children == (LiteralNode("home"),)

    def test_empty_attribute_block(self):
        ast = self.parser.parse("(div (@))")
        assert ast.attributes is not None
        assert len(ast.attributes) == 0

    def test_control_forms_are_plain_tags(self):
        """Парсер не проверяет семантику for/if/switch"""
        ast = self.parser.parse("(for i in $array (div $i))")
        assert ast.name == "for"
        assert ast.children[:3] == (LiteralNode("i"), LiteralNode("in"), VariableNode("array"))

        # for без in - все еще синтаксически корректен
        assert self.parser.parse("(for $array)").name == "for"

    def test_empty_template(self):
        with pytest.raises(EmptyFormError):
            self.parser.parse("   ")

    def test_empty_form(self):
        with pytest.raises(EmptyFormError) as exc:
            self.parser.parse("(div ())")
        assert exc.value.kind == ParseErrorKind.EMPTY_FORM

    @pytest.mark.parametrize("source", ["(div", "(div (span)", "(a (@ (href x)", "(a (@ (href"])
    def test_unclosed(self, source):
        with pytest.raises(UnbalancedParensError):
            self.parser.parse(source)

    def test_extra_closing_paren(self):
        with pytest.raises(UnbalancedParensError):
            self.parser.parse("(div))")

    def test_leading_closing_paren(self):
        with pytest.raises(UnbalancedParensError):
            self.parser.parse(")")

    def test_root_must_be_form(self):
        with pytest.raises(UnexpectedTokenError):
            self.parser.parse("hello")

    def test_second_root_form(self):
        with pytest.raises(UnexpectedTokenError):
            self.parser.parse("(div) (span)")

    def test_tag_name_must_be_atom(self):
        with pytest.raises(UnexpectedTokenError):
            self.parser.parse('("div")')
        with pytest.raises(UnexpectedTokenError):
            self.parser.parse("($div)")

    def test_attribute_block_without_tag(self):
        with pytest.raises(InvalidAttributeBlockError):
            self.parser.parse("(@ (a b))")

    def test_attribute_block_not_first(self):
        with pytest.raises(InvalidAttributeBlockError):
            self.parser.parse("(div text (@ (a b)))")

    @pytest.mark.parametrize("source", [
        "(a (@ href))",
        "(a (@ (href)))",
        "(a (@ (href x y)))",
        "(a (@ ((href) x)))",
        "(a (@ (href (x))))",
        '(a (@ ("href" x)))',
        "(a (@ (href x) (href y)))",
    ])
    def test_invalid_attribute_block(self, source):
        with pytest.raises(InvalidAttributeBlockError) as exc:
            self.parser.parse(source)
        assert exc.value.kind == ParseErrorKind.INVALID_ATTRIBUTE_BLOCK

    def test_error_position(self):
        with pytest.raises(ParseError) as exc:
            self.parser.parse("(div\n  ())")
        assert exc.value.line == 2
        assert exc.value.column == 3
        assert "at 2:3" in str(exc.value)

    def test_parser_reusable(self):
        assert self.parser.parse("(a)").name == "a"
        assert self.parser.parse("(b)").name == "b"


def test_module_level_parse():
    from sxhtml import parse
    assert parse("(p x)") == TagNode("p", children=(LiteralNode("x"),))
