from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest
from PIL import Image

from mdpdf.parser import parse_markdown
from mdpdf.renderer import PdfRenderer
from mdpdf.styles import Style


@dataclass
class Call:
    name: str
    args: Dict[str, Any] = field(default_factory=dict)

    def __getitem__(self, key: str) -> Any:
        return self.args[key]


class RecordingCanvas:
    """Canvas fake that tracks cursor and margins and records every call."""

    def __init__(self, margin: float = 50.0, page_size: Tuple[float, float] = (600.0, 800.0)):
        self.calls: List[Call] = []
        self.margins = [margin, margin, margin, margin]
        self.page_size = page_size
        self.x = margin
        self.y = margin
        self.style = Style()
        self.last_h = 0.0
        self.links = 0
        self.bound: Dict[str, float] = {}

    def _record(self, name: str, **args: Any) -> None:
        self.calls.append(Call(name, args))

    def named(self, *names: str) -> List[Call]:
        return [call for call in self.calls if call.name in names]

    # Canvas protocol

    def get_left_margin(self) -> float:
        return self.margins[0]

    def set_left_margin(self, margin: float) -> None:
        self._record("set_left_margin", margin=margin)
        self.margins[0] = margin
        if self.x < margin:
            self.x = margin

    def get_margins(self) -> Tuple[float, float, float, float]:
        return tuple(self.margins)

    def get_xy(self) -> Tuple[float, float]:
        return self.x, self.y

    def set_x(self, x: float) -> None:
        self.x = x

    def set_xy(self, x: float, y: float) -> None:
        self.x, self.y = x, y

    def get_page_size(self) -> Tuple[float, float]:
        return self.page_size

    def page_no(self) -> int:
        return 1

    def set_style(self, style: Style) -> None:
        self.style = style

    def string_width(self, text: str) -> float:
        return len(text) * self.style.size * 0.5

    def cell(self, w, h, text="", border="", ln=0, align="", fill=False, link=None) -> None:
        if w == 0:
            w = self.page_size[0] - self.margins[2] - self.x
        self._record("cell", w=w, h=h, text=text, border=border, ln=ln, align=align,
                     fill=fill, x=self.x, y=self.y, style=self.style)
        self.last_h = h
        if ln == 1:
            self.x = self.margins[0]
            self.y += h
        elif ln == 2:
            self.y += h
        else:
            self.x += w

    def multi_cell(self, w, h, text, border="", align="L", fill=False) -> None:
        self._record("multi_cell", w=w, h=h, text=text, fill=fill, style=self.style)
        lines = text.split("\n")
        self.x = self.margins[0]
        self.y += h * len(lines)
        self.last_h = h

    def write(self, h, text, link=None, url=None) -> None:
        self._record("write", h=h, text=text, link=link, url=url, x=self.x, y=self.y, style=self.style)
        self.x += self.string_width(text)
        self.last_h = h

    def ln(self, h: Optional[float] = None) -> None:
        self._record("ln", h=h, y=self.y)
        self.x = self.margins[0]
        self.y += self.last_h if h is None else h

    def set_draw_color(self, color) -> None:
        self._record("set_draw_color", color=color)

    def set_fill_color(self, color) -> None:
        self._record("set_fill_color", color=color)

    def set_line_width(self, width: float) -> None:
        self._record("set_line_width", width=width)

    def move_to(self, x: float, y: float) -> None:
        self._record("move_to", x=x, y=y)

    def line_to(self, x: float, y: float) -> None:
        self._record("line_to", x=x, y=y)

    def close_path(self) -> None:
        self._record("close_path")

    def draw_path(self, style: str) -> None:
        self._record("draw_path", style=style)

    def add_link(self) -> str:
        self.links += 1
        self._record("add_link")
        return f"link-{self.links}"

    def set_link(self, link: str, y: Optional[float] = None) -> None:
        self._record("set_link", link=link)
        self.bound.setdefault(link, self.y)

    def image(self, path, w=0, h=0, flow=True, dpi_multiplier=0, inline=False):
        self._record("image", path=path, flow=flow, dpi_multiplier=dpi_multiplier, inline=inline)
        return 10.0, 10.0

    def output(self) -> bytes:
        return b"%PDF-fake"


@pytest.fixture()
def recording_canvas() -> RecordingCanvas:
    return RecordingCanvas()


@pytest.fixture()
def render(recording_canvas: RecordingCanvas) -> Callable[..., PdfRenderer]:
    """Render markdown onto the recording canvas and return the renderer."""
    def _render(markdown: str, **kwargs: Any) -> PdfRenderer:
        renderer = PdfRenderer(recording_canvas, **kwargs)
        renderer.render(parse_markdown(markdown))
        return renderer

    return _render


@pytest.fixture()
def png_factory(tmp_path: Path) -> Callable[..., Path]:
    def _create(name: str, size: Tuple[int, int] = (144, 72), dpi: Optional[int] = None) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        img = Image.new("RGB", size, (200, 30, 30))
        if dpi is None:
            img.save(path)
        else:
            img.save(path, dpi=(dpi, dpi))
        return path

    return _create
