import pytest

from sxhtml import RenderContext, Template, create_renderer


@pytest.fixture
def renderer():
    """Рендерер без пользовательских функций и с настройками по умолчанию."""
    return create_renderer()


@pytest.fixture
def render(renderer):
    """
    Разбор + рендер одной строкой.

    Использование: render("(div $x)", x="1")
    """
    def _render(source: str, **data) -> str:
        return renderer.render(Template.parse(source), RenderContext(data))
    return _render
