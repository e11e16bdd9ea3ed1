"""
Лексические типы.

Определяет типы токенов S-выражений и сам токен с позиционной информацией.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass


class TokenType(enum.Enum):
    """Типы токенов в шаблоне."""
    LPAREN = "LPAREN"        # (
    RPAREN = "RPAREN"        # )
    ATOM = "ATOM"            # голый атом: div, qwer, 42
    STRING = "STRING"        # "строковый литерал"
    VARIABLE = "VARIABLE"    # $name или $name.key
    AT = "AT"                # @ в начале группы
    EOF = "EOF"


@dataclass(frozen=True)
class Token:
    """
    Токен с позиционной информацией для точной диагностики ошибок.

    Для VARIABLE значение хранится без ведущего '$',
    для STRING - уже без кавычек и с раскрытыми экранированиями.
    """
    type: TokenType
    value: str
    position: int        # Позиция в исходном тексте
    line: int            # Номер строки (начиная с 1)
    column: int          # Номер колонки (начиная с 1)

    def __repr__(self) -> str:
        return f"Token({self.type.value}, {self.value!r}, {self.line}:{self.column})"


__all__ = ["TokenType", "Token"]
