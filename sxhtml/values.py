"""
Значения времени выполнения, связываемые в контексте рендеринга.

Закрытое объединение из трех видов: скаляр (строка), упорядоченный список
и упорядоченный словарь. Неявных преобразований между видами нет.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator, Mapping, Optional, Tuple, Union

from .errors import ConfigError


@dataclass(frozen=True)
class Scalar:
    """Одиночное строковое значение."""
    text: str

    kind = "scalar"


@dataclass(frozen=True)
class ListValue:
    """Упорядоченный список значений."""
    items: Tuple["Value", ...] = ()

    kind = "list"

    def __iter__(self) -> Iterator["Value"]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)


@dataclass(frozen=True)
class MapValue:
    """Упорядоченный словарь: пары (ключ, значение) с уникальными ключами."""
    entries: Tuple[Tuple[str, "Value"], ...] = ()

    kind = "map"

    def __post_init__(self):
        keys = [key for key, _ in self.entries]
        if len(keys) != len(set(keys)):
            raise ValueError("Map keys must be unique")

    def get(self, key: str) -> Optional["Value"]:
        for entry_key, value in self.entries:
            if entry_key == key:
                return value
        return None

    def keys(self) -> Tuple[str, ...]:
        return tuple(key for key, _ in self.entries)

    def __iter__(self) -> Iterator[Tuple[str, "Value"]]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)


Value = Union[Scalar, ListValue, MapValue]


def to_value(data: Any) -> Value:
    """
    Преобразует обычные данные Python в Value.

    Правила:
    - Value передается как есть
    - bool -> Scalar("true"/"false")
    - str, int, float -> Scalar(str(v))
    - Mapping -> MapValue (порядок ключей сохраняется, ключи приводятся к str)
    - list, tuple -> ListValue
    - объект с методом as_value() (например, RenderContext) -> его результат

    Raises:
        ConfigError: Для None и неподдерживаемых типов
    """
    if isinstance(data, (Scalar, ListValue, MapValue)):
        return data
    if isinstance(data, bool):
        return Scalar("true" if data else "false")
    if isinstance(data, (str, int, float)):
        return Scalar(str(data))
    if isinstance(data, Mapping):
        return MapValue(tuple((str(key), to_value(value)) for key, value in data.items()))
    if isinstance(data, (list, tuple)):
        return ListValue(tuple(to_value(item) for item in data))
    if hasattr(data, "as_value"):
        return data.as_value()
    if data is None:
        raise ConfigError("Cannot bind None: the template language has no null value")
    raise ConfigError(f"Unsupported value type: {type(data).__name__}")


__all__ = ["Scalar", "ListValue", "MapValue", "Value", "to_value"]
