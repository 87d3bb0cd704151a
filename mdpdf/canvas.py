"""
Drawing surface used by the renderer.

`Canvas` lists the operations the layout handlers consume. `ReportLabCanvas`
implements them on top of a ReportLab canvas with a top-left origin, a
flowing cursor, left/right margins, automatic page breaks and link targets.

License: MIT
"""

import io
import logging
import re
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Set, Tuple, Union

from PIL import Image as PILImage
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.pdfgen import canvas

from mdpdf.exceptions import CanvasError
from mdpdf.styles import RGB, STANDARD_FONTS, FontStyle, Style, colors, page_config

logger = logging.getLogger(__name__)

WORD_PATTERN = re.compile(r"(\s+)")


class Canvas(Protocol):
    """Operations the renderer needs from a drawing surface."""

    def get_left_margin(self) -> float: ...
    def set_left_margin(self, margin: float) -> None: ...
    def get_margins(self) -> Tuple[float, float, float, float]: ...
    def get_xy(self) -> Tuple[float, float]: ...
    def set_x(self, x: float) -> None: ...
    def set_xy(self, x: float, y: float) -> None: ...
    def get_page_size(self) -> Tuple[float, float]: ...
    def page_no(self) -> int: ...
    def set_style(self, style: Style) -> None: ...
    def string_width(self, text: str) -> float: ...
    def cell(self, w: float, h: float, text: str = "", border: str = "", ln: int = 0,
             align: str = "", fill: bool = False, link: Optional[str] = None) -> None: ...
    def multi_cell(self, w: float, h: float, text: str, border: str = "",
                   align: str = "L", fill: bool = False) -> None: ...
    def write(self, h: float, text: str, link: Optional[str] = None, url: Optional[str] = None) -> None: ...
    def ln(self, h: Optional[float] = None) -> None: ...
    def set_draw_color(self, color: RGB) -> None: ...
    def set_fill_color(self, color: RGB) -> None: ...
    def set_line_width(self, width: float) -> None: ...
    def move_to(self, x: float, y: float) -> None: ...
    def line_to(self, x: float, y: float) -> None: ...
    def close_path(self) -> None: ...
    def draw_path(self, style: str) -> None: ...
    def add_link(self) -> str: ...
    def set_link(self, link: str, y: Optional[float] = None) -> None: ...
    def image(self, path: str, w: float = 0, h: float = 0, flow: bool = True,
              dpi_multiplier: float = 0, inline: bool = False) -> Tuple[float, float]: ...
    def output(self) -> bytes: ...


class ReportLabCanvas:
    """
    ReportLab-backed canvas with a top-left coordinate system.

    The cursor (x, y) grows right and down from the top-left page corner.
    Text written with `write` flows and wraps between the left and right
    margins; `cell` draws fixed-size boxes; both break pages automatically
    when the bottom margin is reached.
    """

    def __init__(
        self,
        page_size: Tuple[float, float] = page_config.sizes["A4"],
        margin: float = page_config.mm_to_points(page_config.default_margin_mm),
        title: Optional[str] = None,
        author: Optional[str] = None,
    ):
        self.buffer = io.BytesIO()
        self.page_width, self.page_height = page_size

        self.margin_left = margin
        self.margin_top = margin
        self.margin_right = margin
        self.margin_bottom = margin
        self.cell_margin = page_config.mm_to_points(1)

        self.x = self.margin_left
        self.y = self.margin_top
        self._last_h = 0.0

        self.c = canvas.Canvas(self.buffer, pagesize=page_size)
        if title:
            self.c.setTitle(title)
        if author:
            self.c.setAuthor(author)

        # Graphics state, re-applied after every page break
        self._style = Style()
        self._font_name = "Helvetica"
        self._draw_color: RGB = colors.black
        self._fill_color: RGB = colors.white
        self._line_width = 1.0

        self._fonts: Dict[str, Tuple[str, str, str, str]] = dict(STANDARD_FONTS)
        self._path: List[Tuple[str, float, float]] = []
        self._link_count = 0
        self._links: Set[str] = set()
        self._bound_links: Set[str] = set()

        self._apply_state()

    # Fonts

    def register_font(self, family: str, regular: str, bold: Optional[str] = None,
                      italic: Optional[str] = None, bold_italic: Optional[str] = None) -> None:
        """Register a TrueType family; missing variants fall back to regular."""
        names = []
        for suffix, path in (("", regular), ("-Bold", bold), ("-Italic", italic),
                             ("-BoldItalic", bold_italic)):
            if path is None:
                names.append(names[0])
                continue
            name = f"{family}{suffix}"
            pdfmetrics.registerFont(TTFont(name, path))
            names.append(name)
        pdfmetrics.registerFontFamily(family, normal=names[0], bold=names[1],
                                      italic=names[2], boldItalic=names[3])
        self._fonts[family] = (names[0], names[1], names[2], names[3])
        logger.info(f"Registered font family {family}")

    def font_name(self, style: Style) -> str:
        """Get the concrete font name for a style."""
        regular, bold, italic, bold_italic = self._fonts.get(style.family, STANDARD_FONTS["Helvetica"])
        if style.bold and style.italic:
            return bold_italic
        elif style.bold:
            return bold
        elif style.italic:
            return italic
        return regular

    def set_style(self, style: Style) -> None:
        self._style = style
        self._font_name = self.font_name(style)
        self.c.setFont(self._font_name, style.size)

    @property
    def font_size(self) -> float:
        return self._style.size

    def string_width(self, text: str) -> float:
        return pdfmetrics.stringWidth(text, self._font_name, self._style.size)

    # Margins and cursor

    def get_left_margin(self) -> float:
        return self.margin_left

    def set_left_margin(self, margin: float) -> None:
        self.margin_left = margin
        if self.x < margin:
            self.x = margin

    def get_margins(self) -> Tuple[float, float, float, float]:
        return self.margin_left, self.margin_top, self.margin_right, self.margin_bottom

    def get_xy(self) -> Tuple[float, float]:
        return self.x, self.y

    def set_x(self, x: float) -> None:
        self.x = x

    def set_xy(self, x: float, y: float) -> None:
        self.x = x
        self.y = y

    def get_page_size(self) -> Tuple[float, float]:
        return self.page_width, self.page_height

    def page_no(self) -> int:
        return self.c.getPageNumber()

    @property
    def right_edge(self) -> float:
        return self.page_width - self.margin_right

    def ln(self, h: Optional[float] = None) -> None:
        """Move to the start of the next line."""
        self.x = self.margin_left
        self.y += self._last_h if h is None else h

    # Colors and lines

    def set_draw_color(self, color: RGB) -> None:
        self._draw_color = color
        self.c.setStrokeColorRGB(*color)

    def set_fill_color(self, color: RGB) -> None:
        self._fill_color = color

    def set_line_width(self, width: float) -> None:
        self._line_width = width
        self.c.setLineWidth(width)

    def move_to(self, x: float, y: float) -> None:
        self._path = [("M", x, y)]

    def line_to(self, x: float, y: float) -> None:
        self._path.append(("L", x, y))

    def close_path(self) -> None:
        self._path.append(("Z", 0, 0))

    def draw_path(self, style: str) -> None:
        """Render the current path; style holds F (fill) and/or D (stroke)."""
        path = self.c.beginPath()
        for op, x, y in self._path:
            if op == "M":
                path.moveTo(x, self._rl_y(y))
            elif op == "L":
                path.lineTo(x, self._rl_y(y))
            else:
                path.close()
        self.c.setFillColorRGB(*self._fill_color)
        self.c.drawPath(path, stroke=int("D" in style), fill=int("F" in style))
        self._path = []

    # Text

    def cell(self, w: float, h: float, text: str = "", border: str = "", ln: int = 0,
             align: str = "", fill: bool = False, link: Optional[str] = None) -> None:
        """
        Draw a cell at the cursor.

        Args:
            w: Cell width; 0 extends the cell to the right margin
            h: Cell height
            text: Text drawn inside the cell
            border: "1" for a full frame or any of "LTRB"
            ln: 0 moves right, 1 moves to the next line, 2 moves below
            align: Horizontal L/C/R and vertical T/M/B alignment letters
            fill: Paint the background with the fill color
            link: Internal link handle covering the cell
        """
        if w == 0:
            w = self.right_edge - self.x
        if h > 0:
            self._check_page_break(h)

        x, y = self.x, self.y
        if fill or border == "1":
            self.c.setFillColorRGB(*self._fill_color)
            self.c.rect(x, self._rl_y(y + h), w, h, stroke=int(border == "1"), fill=int(fill))
        if border and border != "1":
            if "L" in border:
                self.c.line(x, self._rl_y(y), x, self._rl_y(y + h))
            if "T" in border:
                self.c.line(x, self._rl_y(y), x + w, self._rl_y(y))
            if "R" in border:
                self.c.line(x + w, self._rl_y(y), x + w, self._rl_y(y + h))
            if "B" in border:
                self.c.line(x, self._rl_y(y + h), x + w, self._rl_y(y + h))

        if text:
            text_width = self.string_width(text)
            if "R" in align:
                text_x = x + w - self.cell_margin - text_width
            elif "C" in align:
                text_x = x + (w - text_width) / 2
            else:
                text_x = x + self.cell_margin
            if "T" in align:
                baseline = y + 0.8 * self.font_size
            elif "B" in align:
                baseline = y + h - 0.2 * self.font_size
            else:
                baseline = y + 0.5 * h + 0.3 * self.font_size
            self._draw_text(text_x, baseline, text)
            if link:
                self._link_rect(link, x, y, w, h)

        self._last_h = h
        if ln == 1:
            self.x = self.margin_left
            self.y += h
        elif ln == 2:
            self.y += h
        else:
            self.x += w

    def multi_cell(self, w: float, h: float, text: str, border: str = "",
                   align: str = "L", fill: bool = False) -> None:
        """Draw one cell per line of text, keeping each line as given."""
        if self.x > self.margin_left:
            self.ln(h)
        for line in text.split("\n"):
            self.cell(w, h, line, border=border, ln=1, align=align, fill=fill)

    def write(self, h: float, text: str, link: Optional[str] = None, url: Optional[str] = None) -> None:
        """Write flowing text, wrapping at the right margin."""
        for index, segment in enumerate(text.split("\n")):
            if index:
                self.ln(h)
            for token in WORD_PATTERN.split(segment):
                if token:
                    self._write_token(h, token, link, url)
        self._last_h = h

    def _write_token(self, h: float, token: str, link: Optional[str], url: Optional[str]) -> None:
        width = self.string_width(token)
        if self.x + width > self.right_edge and self.x > self.margin_left:
            self.ln(h)
            if token.isspace():
                return
        while self.x + width > self.right_edge and len(token) > 1:
            # Token wider than a full line: emit what fits and continue
            head = self._fit(token, self.right_edge - self.x)
            self._emit(h, head, link, url)
            self.ln(h)
            token = token[len(head):]
            width = self.string_width(token)
        self._emit(h, token, link, url)

    def _fit(self, token: str, available: float) -> str:
        end = 1
        while end < len(token) and self.string_width(token[:end + 1]) <= available:
            end += 1
        return token[:end]

    def _emit(self, h: float, text: str, link: Optional[str], url: Optional[str]) -> None:
        self._check_page_break(h)
        width = self.string_width(text)
        self._draw_text(self.x, self.y + 0.5 * h + 0.3 * self.font_size, text)
        if link:
            self._link_rect(link, self.x, self.y, width, h)
        elif url:
            self.c.linkURL(url, self._rl_rect(self.x, self.y, width, h), relative=0, thickness=0)
        self.x += width

    def _draw_text(self, x: float, baseline: float, text: str) -> None:
        self.c.setFillColorRGB(*self._style.color)
        self.c.drawString(x, self._rl_y(baseline), text)
        if FontStyle.UNDERLINE in self._style.flags:
            underline_y = self._rl_y(baseline + 0.1 * self.font_size)
            self.c.saveState()
            self.c.setStrokeColorRGB(*self._style.color)
            self.c.setLineWidth(0.05 * self.font_size)
            self.c.line(x, underline_y, x + self.string_width(text), underline_y)
            self.c.restoreState()

    # Links

    def add_link(self) -> str:
        """Allocate a new internal link handle."""
        self._link_count += 1
        name = f"anchor-{self._link_count}"
        self._links.add(name)
        return name

    def set_link(self, link: str, y: Optional[float] = None) -> None:
        """Bind a link handle to the current page at y (default: cursor)."""
        if link in self._bound_links:
            return
        if y is None:
            # The text that follows may not fit on this page
            self._check_page_break(self._style.line_height)
        top = self.y if y is None else y
        self.c.bookmarkPage(link, fit="XYZ", left=0, top=self._rl_y(top))
        self._bound_links.add(link)

    def _link_rect(self, link: str, x: float, y: float, w: float, h: float) -> None:
        self.c.linkRect("", link, self._rl_rect(x, y, w, h), relative=0, thickness=0)

    # Images

    def image(self, path: str, w: float = 0, h: float = 0, flow: bool = True,
              dpi_multiplier: float = 0, inline: bool = False) -> Tuple[float, float]:
        """
        Embed an image at the cursor.

        Missing dimensions are derived from the pixel size and the DPI stored
        in the file (72 when absent), divided by `dpi_multiplier` when set.
        Inline images advance the cursor horizontally; block images start on
        a new line and advance it vertically when `flow` is set.

        Returns:
            Drawn (width, height) in points
        """
        with PILImage.open(path) as img:
            px_width, px_height = img.size
            dpi = img.info.get("dpi", (72, 72))[0] or 72
        if dpi_multiplier:
            dpi *= dpi_multiplier
        scale = 72.0 / dpi

        if not w and not h:
            w, h = px_width * scale, px_height * scale
        elif not h:
            h = w * px_height / px_width
        elif not w:
            w = h * px_width / px_height

        available = self.right_edge - self.margin_left
        if w > available:
            h = h * available / w
            w = available

        if not inline and self.x > self.margin_left:
            self.ln()
        if inline and self.x + w > self.right_edge:
            self.ln()
        self._check_page_break(h)

        self.c.drawImage(path, self.x, self._rl_y(self.y + h), width=w, height=h, mask="auto")

        if inline:
            self.x += w
        elif flow:
            self.y += h
        self._last_h = h
        return w, h

    # Output

    def output(self) -> bytes:
        """Finish the document and return the PDF bytes."""
        for link in sorted(self._links - self._bound_links):
            # Dangling internal links point at the last page
            logger.warning(f"Link target {link} was never bound")
            self.set_link(link, self.margin_top)
        self.c.save()
        return self.buffer.getvalue()

    def save(self, path: Union[str, Path]) -> Path:
        """Write the finished document to a file."""
        target = Path(path)
        try:
            target.write_bytes(self.output())
        except OSError as e:
            raise CanvasError(f"Cannot write {target}: {e}") from e
        return target

    # Internals

    def _rl_y(self, y: float) -> float:
        return self.page_height - y

    def _rl_rect(self, x: float, y: float, w: float, h: float) -> Tuple[float, float, float, float]:
        return x, self._rl_y(y + h), x + w, self._rl_y(y)

    def _check_page_break(self, height: float) -> None:
        """Start a new page when height no longer fits above the bottom margin."""
        if self.y + height > self.page_height - self.margin_bottom and self.y > self.margin_top:
            self.c.showPage()
            self.y = self.margin_top
            self._apply_state()

    def _apply_state(self) -> None:
        self.c.setFont(self._font_name, self._style.size)
        self.c.setStrokeColorRGB(*self._draw_color)
        self.c.setLineWidth(self._line_width)
