"""
Настройки рендерера.

Конфигурация задается в коде (RendererConfig) или YAML-текстом
(load_renderer_config). Неизвестные ключи и значения неверного типа
считаются ошибкой конфигурации.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Mapping, Optional

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from .errors import ConfigError

logger = logging.getLogger(__name__)

_yaml = YAML(typ="safe")

DEFAULT_DOCTYPE = "<!doctype html5>"
DEFAULT_RECURSION_LIMIT = 64
DEFAULT_VOID_ELEMENTS: FrozenSet[str] = frozenset({
    "area", "base", "br", "col", "embed", "hr", "img", "input",
    "link", "meta", "param", "source", "track", "wbr",
})


@dataclass(frozen=True)
class RendererConfig:
    """
    Настройки рендерера.

    Attributes:
        doctype: Строка, выводимая перед корневым html (None - не выводить)
        recursion_limit: Максимальная вложенность вызовов обработчиков и рендеров
        void_elements: Теги без тела, выводимые как <tag />
        autoescape: Экранировать ли подставляемые значения переменных
    """
    doctype: Optional[str] = DEFAULT_DOCTYPE
    recursion_limit: int = DEFAULT_RECURSION_LIMIT
    void_elements: FrozenSet[str] = field(default_factory=lambda: DEFAULT_VOID_ELEMENTS)
    autoescape: bool = False

    def __post_init__(self):
        if isinstance(self.recursion_limit, bool) or not isinstance(self.recursion_limit, int):
            raise ConfigError(f"recursion_limit must be an integer, got {self.recursion_limit!r}")
        if self.recursion_limit < 1:
            raise ConfigError(f"recursion_limit must be positive, got {self.recursion_limit}")
        if self.doctype is not None and not isinstance(self.doctype, str):
            raise ConfigError(f"doctype must be a string or null, got {type(self.doctype).__name__}")
        if not isinstance(self.autoescape, bool):
            raise ConfigError(f"autoescape must be a boolean, got {self.autoescape!r}")
        # frozen: приводим коллекцию через object.__setattr__
        object.__setattr__(self, "void_elements", frozenset(self.void_elements))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RendererConfig":
        """Создание экземпляра из словаря (из YAML)."""
        if not isinstance(data, Mapping):
            raise ConfigError(f"Renderer config must be a mapping, got {type(data).__name__}")

        known = {"doctype", "recursion_limit", "void_elements", "autoescape"}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown renderer config keys: {', '.join(map(str, unknown))}")

        kwargs: Dict[str, Any] = {}
        if "doctype" in data:
            kwargs["doctype"] = data["doctype"]
        if "recursion_limit" in data:
            kwargs["recursion_limit"] = data["recursion_limit"]
        if "autoescape" in data:
            kwargs["autoescape"] = data["autoescape"]
        if "void_elements" in data:
            raw = data["void_elements"]
            if not isinstance(raw, (list, tuple)) or not all(isinstance(t, str) for t in raw):
                raise ConfigError("void_elements must be a list of tag names")
            kwargs["void_elements"] = frozenset(raw)

        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        """Сериализация в словарь для YAML."""
        return {
            "doctype": self.doctype,
            "recursion_limit": self.recursion_limit,
            "void_elements": sorted(self.void_elements),
            "autoescape": self.autoescape,
        }


def load_renderer_config(text: str) -> RendererConfig:
    """
    Загружает настройки из YAML-текста.

    Пустой документ дает настройки по умолчанию.

    Raises:
        ConfigError: При ошибке YAML или неверных значениях
    """
    try:
        raw = _yaml.load(text)
    except YAMLError as e:
        raise ConfigError(f"Invalid YAML renderer config: {e}") from e

    if raw is None:
        return RendererConfig()

    config = RendererConfig.from_dict(raw)
    logger.debug(f"Loaded renderer config: {config.to_dict()}")
    return config


__all__ = [
    "RendererConfig",
    "load_renderer_config",
    "DEFAULT_DOCTYPE",
    "DEFAULT_RECURSION_LIMIT",
    "DEFAULT_VOID_ELEMENTS",
]
