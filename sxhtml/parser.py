"""
Парсер шаблонов с рекурсивным спуском.

Строит дерево выражений из последовательности токенов. Разбор чисто
структурный: форма управляющих конструкций (for ... in, switch/case)
проверяется только при вычислении.

Грамматика:
form        → "(" ATOM attr-block? child* ")"
attr-block  → "(" "@" attr-pair* ")"
attr-pair   → "(" ATOM value ")"
value       → ATOM | STRING | VARIABLE
child       → form | ATOM | STRING | VARIABLE
"""

from __future__ import annotations

import logging
from typing import List, Type

from .errors import (
    ParseError,
    UnexpectedTokenError,
    UnbalancedParensError,
    EmptyFormError,
    InvalidAttributeBlockError,
)
from .lexer import TemplateLexer
from .nodes import Attribute, AttributeSet, ExprNode, LiteralNode, TagNode, VariableNode
from .tokens import Token, TokenType

logger = logging.getLogger(__name__)


class TemplateParser:
    """
    Парсер S-выражений шаблона.

    Преобразует список токенов в единственную корневую форму (TagNode).
    """

    def __init__(self):
        self.lexer = TemplateLexer()
        self._tokens: List[Token] = []
        self._position = 0

    def parse(self, text: str) -> TagNode:
        """
        Парсит текст шаблона в AST.

        Args:
            text: Исходный текст шаблона

        Returns:
            Корневой узел AST

        Raises:
            LexError: При ошибке токенизации
            ParseError: При синтаксической ошибке
        """
        return self.parse_tokens(self.lexer.tokenize(text))

    def parse_tokens(self, tokens: List[Token]) -> TagNode:
        """
        Парсит готовую последовательность токенов в AST.

        Args:
            tokens: Токены (EOF в конце не обязателен)

        Returns:
            Корневой узел AST
        """
        self._tokens = list(tokens)
        self._position = 0

        if self._is_at_end():
            raise EmptyFormError("Empty template", 1, 1, 0)

        current = self._current_token()
        if current.type == TokenType.RPAREN:
            raise self._error(UnbalancedParensError, "Unmatched ')'", current)
        if current.type != TokenType.LPAREN:
            raise self._error(UnexpectedTokenError, f"Template must start with a form, got {current.type.value}", current)

        root = self._parse_form()

        # Проверяем, что мы достигли конца входных данных
        if not self._is_at_end():
            current = self._current_token()
            if current.type == TokenType.RPAREN:
                raise self._error(UnbalancedParensError, "Unmatched ')'", current)
            raise self._error(UnexpectedTokenError, f"Unexpected token '{current.value}' after root form", current)

        logger.debug(f"Parsed template with root form '{root.name}' ({len(root.children)} children)")
        return root

    def _parse_form(self) -> TagNode:
        """Парсит форму: ( name attr-block? child* )"""
        open_token = self._advance()

        head = self._current_token()
        if head.type == TokenType.EOF:
            raise self._error(UnbalancedParensError, "Unclosed '('", open_token)
        if head.type == TokenType.RPAREN:
            raise self._error(EmptyFormError, "Empty form '()'", open_token)
        if head.type == TokenType.AT:
            raise self._error(InvalidAttributeBlockError, "Attribute block must follow a tag name", head)
        if head.type != TokenType.ATOM:
            raise self._error(UnexpectedTokenError, f"Expected tag name, got {head.type.value}", head)
        name = self._advance().value

        attributes = None
        if self._at_attribute_block():
            attributes = self._parse_attribute_block()

        children: List[ExprNode] = []
        while True:
            current = self._current_token()
            if current.type == TokenType.RPAREN:
                self._advance()
                break
            if current.type == TokenType.EOF:
                raise self._error(UnbalancedParensError, f"Unclosed form '{name}'", open_token)
            if current.type == TokenType.LPAREN:
                if self._at_attribute_block():
                    raise self._error(
                        InvalidAttributeBlockError,
                        f"Attribute block of '{name}' must immediately follow the tag name",
                        current,
                    )
                children.append(self._parse_form())
            else:
                children.append(self._parse_leaf())

        return TagNode(name=name, attributes=attributes, children=tuple(children))

    def _parse_leaf(self) -> ExprNode:
        """Парсит литерал или переменную."""
        token = self._current_token()
        if token.type in (TokenType.ATOM, TokenType.STRING):
            self._advance()
            return LiteralNode(token.value)
        if token.type == TokenType.VARIABLE:
            self._advance()
            return VariableNode(token.value)
        raise self._error(UnexpectedTokenError, f"Unexpected token {token.type.value}", token)

    def _parse_attribute_block(self) -> AttributeSet:
        """Парсит блок атрибутов: ( @ (key value)* )"""
        open_token = self._advance()
        self._advance()  # @

        items: List[Attribute] = []
        keys = set()
        while True:
            current = self._current_token()
            if current.type == TokenType.RPAREN:
                self._advance()
                break
            if current.type == TokenType.EOF:
                raise self._error(UnbalancedParensError, "Unclosed attribute block", open_token)
            if current.type != TokenType.LPAREN:
                raise self._error(InvalidAttributeBlockError, "Expected '(key value)' pair in attribute block", current)

            attr = self._parse_attribute_pair()
            if attr.key in keys:
                raise self._error(InvalidAttributeBlockError, f"Duplicate attribute '{attr.key}'", current)
            keys.add(attr.key)
            items.append(attr)

        return AttributeSet(tuple(items))

    def _parse_attribute_pair(self) -> Attribute:
        """Парсит пару атрибута: ( key value )"""
        open_token = self._advance()

        key_token = self._current_token()
        if key_token.type == TokenType.EOF:
            raise self._error(UnbalancedParensError, "Unclosed attribute pair", open_token)
        if key_token.type != TokenType.ATOM:
            raise self._error(InvalidAttributeBlockError, "Attribute name must be a bare atom", key_token)
        self._advance()

        value_token = self._current_token()
        if value_token.type == TokenType.EOF:
            raise self._error(UnbalancedParensError, "Unclosed attribute pair", open_token)
        if value_token.type in (TokenType.ATOM, TokenType.STRING):
            value: ExprNode = LiteralNode(value_token.value)
        elif value_token.type == TokenType.VARIABLE:
            value = VariableNode(value_token.value)
        elif value_token.type == TokenType.RPAREN:
            raise self._error(InvalidAttributeBlockError, f"Attribute '{key_token.value}' has no value", value_token)
        else:
            raise self._error(
                InvalidAttributeBlockError,
                f"Value of attribute '{key_token.value}' must be an atom, string or variable",
                value_token,
            )
        self._advance()

        closing = self._current_token()
        if closing.type == TokenType.EOF:
            raise self._error(UnbalancedParensError, "Unclosed attribute pair", open_token)
        if closing.type != TokenType.RPAREN:
            raise self._error(
                InvalidAttributeBlockError,
                f"Attribute '{key_token.value}' must have exactly one value",
                closing,
            )
        self._advance()

        return Attribute(key=key_token.value, value=value)

    # Вспомогательные методы для работы с токенами

    def _current_token(self) -> Token:
        """Возвращает текущий токен без продвижения позиции."""
        return self._peek(0)

    def _peek(self, offset: int) -> Token:
        """Возвращает токен на указанном смещении от текущей позиции."""
        pos = self._position + offset
        if pos >= len(self._tokens):
            # Возвращаем EOF если вышли за границы
            last = self._tokens[-1] if self._tokens else None
            position = last.position + len(last.value) if last else 0
            line = last.line if last else 1
            column = last.column + len(last.value) if last else 1
            return Token(TokenType.EOF, "", position, line, column)
        return self._tokens[pos]

    def _is_at_end(self) -> bool:
        """Проверяет, достигли ли мы конца токенов."""
        return self._current_token().type == TokenType.EOF

    def _advance(self) -> Token:
        """Продвигает позицию и возвращает предыдущий токен."""
        token = self._current_token()
        if not self._is_at_end():
            self._position += 1
        return token

    def _at_attribute_block(self) -> bool:
        """Проверяет, начинается ли в текущей позиции блок (@ ...)."""
        return (
            self._current_token().type == TokenType.LPAREN
            and self._peek(1).type == TokenType.AT
        )

    @staticmethod
    def _error(error_cls: Type[ParseError], message: str, token: Token) -> ParseError:
        return error_cls(message, token.line, token.column, token.position)


def parse(text: str) -> TagNode:
    """
    Удобная функция для разбора текста шаблона в корневой узел.

    Raises:
        LexError: При ошибке токенизации
        ParseError: При синтаксической ошибке
    """
    return TemplateParser().parse(text)


__all__ = ["TemplateParser", "parse"]
