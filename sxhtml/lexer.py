"""
Лексер для шаблонов на S-выражениях.

Разбивает исходный текст на плоский поток токенов:
- Скобки ( и )
- Голые атомы (имена тегов, литеральный текст)
- Строковые литералы в двойных кавычках
- Переменные вида $name
- Маркер атрибутов @ (только первым элементом группы)

Пробельные символы вне строк являются разделителями и игнорируются.
Подстановка переменных внутри строк здесь не выполняется.
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional

from .errors import LexError
from .tokens import Token, TokenType

logger = logging.getLogger(__name__)

# Граница атома: пробел, скобка, кавычка или конец текста
_DELIMITER = r'(?=[\s()"]|$)'

IDENTIFIER_PATTERN = r'[A-Za-z_][\w-]*(?:\.[A-Za-z_][\w-]*)*'


def unescape_string(body: str) -> str:
    """
    Раскрывает экранирования внутри строкового литерала.

    Обязательное экранирование одно - \\" ; также поддерживается \\\\.
    Неизвестные последовательности остаются как есть.
    """
    if "\\" not in body:
        return body

    out: List[str] = []
    i = 0
    while i < len(body):
        ch = body[i]
        if ch == "\\" and i + 1 < len(body) and body[i + 1] in ('"', "\\"):
            out.append(body[i + 1])
            i += 2
            continue
        out.append(ch)
        i += 1
    return "".join(out)


class TemplateLexer:
    """
    Лексер для разбиения шаблона на токены.

    Поддерживаемые токены:
    - LPAREN / RPAREN: скобки
    - STRING: "..." с экранированием \\"
    - VARIABLE: $identifier (точки разделяют ключи вложенных словарей)
    - AT: одиночный @ сразу после открывающей скобки
    - ATOM: любая другая последовательность непробельных символов
    - EOF: конец текста
    """

    # Спецификация токенов: (regex_pattern, token_type, ignore_flag)
    TOKEN_SPECS = [
        # Пробелы, табуляция, переводы строк (игнорируем)
        (r'\s+', 'WHITESPACE', True),

        (r'\(', 'LPAREN', False),
        (r'\)', 'RPAREN', False),

        # Строка целиком; незакрытая кавычка ловится следующим паттерном
        (r'"(?:\\[\s\S]|[^"\\])*"', 'STRING', False),
        (r'"', 'UNTERMINATED', False),

        # Переменная должна занимать атом целиком, иначе это обычный атом
        (r'\$' + IDENTIFIER_PATTERN + _DELIMITER, 'VARIABLE', False),

        (r'@' + _DELIMITER, 'AT', False),

        (r'[^\s()"]+', 'ATOM', False),
    ]

    def __init__(self):
        # Компилируем регулярные выражения для лучшей производительности
        self._compiled_patterns = [
            (re.compile(pattern), token_type, ignore)
            for pattern, token_type, ignore in self.TOKEN_SPECS
        ]

    def tokenize(self, text: str) -> List[Token]:
        """
        Разбивает текст шаблона на токены.

        Args:
            text: Исходный текст шаблона

        Returns:
            Список токенов, включая EOF в конце

        Raises:
            LexError: При незакрытом строковом литерале
        """
        tokens: List[Token] = []
        position = 0
        line = 1
        column = 1

        while position < len(text):
            for pattern, token_type, ignore in self._compiled_patterns:
                match = pattern.match(text, position)
                if not match:
                    continue

                raw = match.group(0)
                if not ignore:
                    token = self._make_token(token_type, raw, position, line, column, tokens)
                    tokens.append(token)

                line, column = self._advance_location(raw, line, column)
                position = match.end()
                break
            else:
                # Недостижимо: ATOM покрывает любой непробельный символ
                raise LexError("Failed to tokenize", line, column, position)

        tokens.append(Token(TokenType.EOF, "", position, line, column))

        logger.debug(f"Tokenized template into {len(tokens)} tokens")
        return tokens

    def _make_token(
        self,
        token_type: str,
        raw: str,
        position: int,
        line: int,
        column: int,
        previous: List[Token],
    ) -> Token:
        """Создает токен нужного типа из совпавшего текста."""
        if token_type == 'UNTERMINATED':
            raise LexError("Unterminated string literal", line, column, position)

        if token_type == 'STRING':
            return Token(TokenType.STRING, unescape_string(raw[1:-1]), position, line, column)

        if token_type == 'VARIABLE':
            return Token(TokenType.VARIABLE, raw[1:], position, line, column)

        if token_type == 'AT':
            # @ является маркером только первым элементом группы
            last: Optional[Token] = previous[-1] if previous else None
            if last is not None and last.type == TokenType.LPAREN:
                return Token(TokenType.AT, raw, position, line, column)
            return Token(TokenType.ATOM, raw, position, line, column)

        return Token(TokenType[token_type], raw, position, line, column)

    @staticmethod
    def _advance_location(raw: str, line: int, column: int):
        """Сдвигает номер строки и колонки на длину совпавшего текста."""
        newlines = raw.count("\n")
        if newlines:
            return line + newlines, len(raw) - raw.rfind("\n")
        return line, column + len(raw)


def tokenize(text: str) -> List[Token]:
    """
    Удобная функция для токенизации текста шаблона.

    Args:
        text: Исходный текст шаблона

    Returns:
        Список токенов, включая EOF
    """
    return TemplateLexer().tokenize(text)


__all__ = ["TemplateLexer", "tokenize", "unescape_string", "IDENTIFIER_PATTERN"]
