"""
PDF rendering engine for markdown node trees.

Walks the parsed tree with enter/leave events and keeps a stack of nested
formatting contexts (headings, lists, items, links, block quotes, tables).
Each handler updates the stack and emits canvas operations, leaving the
cursor and margins ready for the next sibling.

License: MIT
"""

import logging
import posixpath
from dataclasses import replace
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple, Union
from urllib.parse import urlparse

from mdpdf.canvas import Canvas, ReportLabCanvas
from mdpdf.models import RenderOptions
from mdpdf.nodes import ListType, Node, NodeKind
from mdpdf.parser import parse_markdown
from mdpdf.state import (
    AnchorRegistry, ContainerKind, ContainerStack, ContainerState, ListKind, TableLayout, TextRun
)
from mdpdf.styles import (
    BULLET, BULLET_COLUMN_EMS, CELL_PADDING_EMS, DPI_ALTERNATIVE_MULTIPLIER, HR_THICKNESS, ITEM_TEXT_EMS,
    TABLE_BORDER_WIDTH, FontStyle, Style, StyleRegistry, colors, page_config
)

logger = logging.getLogger(__name__)

Handler = Callable[[Node, bool], None]


def can_open(path: str) -> bool:
    """Return True when path names a readable file."""
    try:
        with open(path, "rb"):
            return True
    except OSError:
        return False


def has_url_scheme(destination: str) -> bool:
    """Return True for destinations such as http://... or mailto:..."""
    scheme = urlparse(destination).scheme
    # Single letters are Windows drive names, not schemes
    return len(scheme) > 1


class PdfRenderer:
    """
    Renders a markdown node tree onto a canvas.

    One instance owns all state for one render pass: the container stack,
    the anchor registry, the table layout of the current table and the
    renderer-wide flags. Use a fresh instance per document.
    """

    def __init__(
        self,
        pdf: Canvas,
        styles: Optional[StyleRegistry] = None,
        image_path_prefix: str = "",
        image_path_alternative_prefix: str = "",
        file_check: Callable[[str], bool] = can_open,
    ):
        """
        Initialize renderer with a canvas.

        Args:
            pdf: Drawing surface
            styles: Style registry (stock styles when omitted)
            image_path_prefix: Prefix tried first for image destinations
            image_path_alternative_prefix: Fallback prefix for high-resolution images
            file_check: Predicate telling whether an image path can be opened
        """
        self.pdf = pdf
        self.styles = styles or StyleRegistry.default()
        self.image_path_prefix = image_path_prefix
        self.image_path_alternative_prefix = image_path_alternative_prefix
        self.file_check = file_check

        self.pdf.set_style(self.styles.normal)
        self.em = self.pdf.string_width("m")

        margin = self.pdf.get_left_margin()
        self.cs = ContainerStack(ContainerState(
            kind=ContainerKind.DOCUMENT,
            text_style=self.styles.normal,
            left_margin=margin,
            restore_margin=margin,
        ))
        self.anchors = AnchorRegistry(self.pdf)

        # Renderer-wide flags
        self.in_text = False
        self.in_image = False
        self.paragraph_unprocessed = False
        self.trim_next = False
        self.strong_on = False
        self.current_heading_style: Optional[Style] = None

        self.skipped_images: List[str] = []

        self._handlers: Dict[NodeKind, Handler] = {
            NodeKind.DOCUMENT: self._process_document,
            NodeKind.PARAGRAPH: self._process_paragraph,
            NodeKind.HEADING: self._process_heading,
            NodeKind.TEXT: self._process_text,
            NodeKind.SOFTBREAK: self._process_softbreak,
            NodeKind.HARDBREAK: self._process_hardbreak,
            NodeKind.EMPH: self._process_emph,
            NodeKind.STRONG: self._process_strong,
            NodeKind.DEL: self._process_del,
            NodeKind.LINK: self._process_link,
            NodeKind.IMAGE: self._process_image,
            NodeKind.CODE: self._process_code,
            NodeKind.CODE_BLOCK: self._process_code_block,
            NodeKind.HTML_BLOCK: self._process_html_block,
            NodeKind.HTML_SPAN: self._process_html_span,
            NodeKind.BLOCK_QUOTE: self._process_block_quote,
            NodeKind.LIST: self._process_list,
            NodeKind.ITEM: self._process_item,
            NodeKind.HORIZONTAL_RULE: self._process_horizontal_rule,
            NodeKind.TABLE: self._process_table,
            NodeKind.TABLE_HEAD: self._process_table_head,
            NodeKind.TABLE_BODY: self._process_table_body,
            NodeKind.TABLE_ROW: self._process_table_row,
            NodeKind.TABLE_CELL: self._process_table_cell,
        }

    @property
    def handlers(self) -> Dict[NodeKind, Handler]:
        return dict(self._handlers)

    def render(self, document: Node) -> None:
        """Walk the tree and emit every node onto the canvas."""
        for node, entering in document.walk():
            self.process(node, entering)

    def process(self, node: Node, entering: bool) -> None:
        """Dispatch one traversal event."""
        self._handlers[node.kind](node, entering)

    # Helpers

    def tracer(self, source: str, msg: str = "") -> None:
        logger.debug(f"[{source}] {msg}")

    def cr(self) -> None:
        """Line break at body text height."""
        self.pdf.set_style(self.styles.normal)
        self.pdf.ln(self.styles.normal.line_height)

    def write(self, style: Style, text: str, link: Optional[str] = None, url: Optional[str] = None) -> None:
        self.pdf.set_style(style)
        self.pdf.write(style.line_height, text, link=link, url=url)

    def emit(self, style: Style, text: str, link: Optional[str] = None, url: Optional[str] = None) -> None:
        """Write text, or buffer it on the enclosing table cell."""
        cell = self.cs.nearest(ContainerKind.TABLE_CELL)
        if cell is not None:
            cell.cell_runs.append(TextRun(style, text, link, url))
            return
        self.write(style, text, link=link, url=url)

    def _bind_heading_anchor(self, frame: ContainerState) -> None:
        self.pdf.set_link(self.anchors.resolve(frame.destination))

    def _push(self, kind: ContainerKind, style: Style, **fields) -> ContainerState:
        fields.setdefault("left_margin", self.cs.peek().left_margin)
        fields.setdefault("restore_margin", self.pdf.get_left_margin())
        frame = ContainerState(kind=kind, text_style=style, **fields)
        self.cs.push(frame)
        return frame

    def _table(self) -> TableLayout:
        return self.cs.nearest(ContainerKind.TABLE).table

    # Handlers

    def _process_document(self, node: Node, entering: bool) -> None:
        self.tracer("Document", "entering" if entering else "leaving")

    def _process_text(self, node: Node, entering: bool) -> None:
        if self.in_image:
            return

        self.in_text = False
        frame = self.cs.peek()
        style = frame.text_style
        self.pdf.set_style(style)
        s = node.literal.replace("\n", " ")
        if self.trim_next:
            s = s.lstrip(" ")
            self.trim_next = False
        self.tracer("Text", s)

        if frame.kind is ContainerKind.LINK:
            if has_url_scheme(frame.destination):
                self.emit(style, s, url=frame.destination)
            else:
                self.emit(style, s, link=self.anchors.resolve(frame.destination))
        elif frame.kind is ContainerKind.HEADING:
            self.in_text = True
            self._bind_heading_anchor(frame)
            self.write(style, s)
        elif frame.kind is ContainerKind.TABLE_CELL:
            self.in_text = True
            self.emit(style, s)
        else:
            self.in_text = len(s) != 0
            self.write(style, s)

        if self.paragraph_unprocessed and frame.list_kind is not ListKind.NOT_A_LIST and s:
            if self.strong_on:
                # Bold lead-in of a list paragraph stands on its own line
                self.tracer("First text in list paragraph", s)
                self.trim_next = True
                self.cr()
            self.paragraph_unprocessed = False

    def _process_softbreak(self, node: Node, entering: bool) -> None:
        if self.in_image or self.trim_next:
            return
        self.tracer("Softbreak")
        self.emit(self.cs.peek().text_style, " ")

    def _process_hardbreak(self, node: Node, entering: bool) -> None:
        self.tracer("Hardbreak")
        self.pdf.ln(self.cs.peek().text_style.line_height)

    def _process_code_block(self, node: Node, entering: bool) -> None:
        self.tracer("Codeblock", f"{len(node.literal)} chars")
        style = self.styles.backtick
        self.cr()
        self.pdf.set_style(style)
        self.pdf.set_fill_color(style.fill)
        self.pdf.multi_cell(0, style.line_height, node.literal, fill=True)

    def _process_code(self, node: Node, entering: bool) -> None:
        self.tracer("Code", node.literal)
        frame = self.cs.peek()
        if frame.kind is ContainerKind.HEADING:
            self._bind_heading_anchor(frame)
        self.emit(self.styles.backtick, node.literal)

    def _process_list(self, node: Node, entering: bool) -> None:
        kind = ListKind.UNORDERED
        if ListType.ORDERED in node.list_flags:
            kind = ListKind.ORDERED
        if ListType.DEFINITION in node.list_flags:
            kind = ListKind.DEFINITION
        self.pdf.set_style(self.styles.normal)

        if entering:
            margin = self.cs.peek().left_margin + self.styles.indent
            self.tracer(f"{kind.value} List (entering)", f"left margin set to {margin}")
            self._push(
                ContainerKind.LIST,
                self.styles.normal,
                left_margin=margin,
                list_kind=kind,
                item_number=node.start - 1,
            )
            self.pdf.set_left_margin(margin)
        else:
            frame = self.cs.pop()
            self.pdf.set_left_margin(frame.restore_margin)
            self.tracer(f"{kind.value} List (leaving)", f"left margin re-set to {frame.restore_margin}")
            if self.cs.nearest(ContainerKind.LIST) is None:
                self.cr()

    def _process_item(self, node: Node, entering: bool) -> None:
        if entering:
            parent = self.cs.peek()
            self.tracer(f"{parent.list_kind.value} Item (entering) #{parent.item_number + 1}")
            self.cr()
            frame = self._push(
                ContainerKind.ITEM,
                self.styles.normal,
                list_kind=parent.list_kind,
                item_number=parent.item_number + 1,
                first_paragraph=True,
            )
            h = self.styles.normal.line_height
            if frame.list_kind is ListKind.UNORDERED:
                self.pdf.cell(BULLET_COLUMN_EMS * self.em, h, BULLET, align="RB")
            elif frame.list_kind is ListKind.ORDERED:
                self.pdf.cell(BULLET_COLUMN_EMS * self.em, h, f"{frame.item_number}.", align="RB")
            elif ListType.TERM in node.list_flags:
                # Definition terms hang at the list margin
                return
            text_margin = frame.left_margin + ITEM_TEXT_EMS * self.em
            self.pdf.set_left_margin(text_margin)
            self.pdf.set_x(text_margin)
        else:
            frame = self.cs.peek()
            self.tracer(f"{frame.list_kind.value} Item (leaving)")
            self.pdf.set_left_margin(frame.left_margin)
            self.cr()
            self.cs.parent().item_number += 1
            self.cs.pop()

    def _process_emph(self, node: Node, entering: bool) -> None:
        self.tracer("Emph", "entering" if entering else "leaving")
        if entering:
            self.cs.peek().push_flag(FontStyle.ITALIC)
        else:
            self.cs.peek().pop_flag(FontStyle.ITALIC)

    def _process_strong(self, node: Node, entering: bool) -> None:
        self.tracer("Strong", "entering" if entering else "leaving")
        frame = self.cs.peek()
        if entering:
            frame.push_flag(FontStyle.BOLD)
            self.strong_on = True
        else:
            frame.pop_flag(FontStyle.BOLD)
            self.strong_on = FontStyle.BOLD in frame.style_depth

    def _process_del(self, node: Node, entering: bool) -> None:
        self.tracer("Del", "entering" if entering else "leaving")

    def _process_link(self, node: Node, entering: bool) -> None:
        if entering:
            style = self.styles.link
            if self.current_heading_style is not None:
                style = replace(style, size=self.current_heading_style.size)
            self._push(ContainerKind.LINK, style, destination=node.destination)
            self.tracer("Link (entering)", f"Destination[{node.destination}] Title[{node.title}]")
        else:
            self.tracer("Link (leaving)")
            self.cs.pop()

    def _process_image(self, node: Node, entering: bool) -> None:
        self.in_image = entering
        if not entering:
            self.tracer("Image (leaving)")
            return

        self.tracer("Image (entering)", f"Destination[{node.destination}] Title[{node.title}]")
        img_path = self.image_path_prefix + node.destination
        dpi_multiplier = 0.0
        if not self.file_check(img_path):
            dpi_multiplier = DPI_ALTERNATIVE_MULTIPLIER
            img_path = self.image_path_alternative_prefix + node.destination
        img_path = posixpath.normpath(img_path)

        if not self.file_check(img_path):
            logger.error(f"Can't open image: {img_path}")
            self.skipped_images.append(node.destination)
            return
        try:
            self.pdf.image(img_path, flow=True, dpi_multiplier=dpi_multiplier, inline=self.in_text)
        except OSError as e:
            logger.error(f"Can't read image {img_path}: {e}")
            self.skipped_images.append(node.destination)

    def _process_paragraph(self, node: Node, entering: bool) -> None:
        self.pdf.set_style(self.styles.normal)
        self.paragraph_unprocessed = True
        self.trim_next = False
        frame = self.cs.peek()

        if entering:
            self.tracer("Paragraph (entering)", f"margins (left, top, right, bottom) {self.pdf.get_margins()}")
            if frame.kind is ContainerKind.ITEM:
                if not frame.first_paragraph:
                    self.cr()
                return
            self.cr()
        else:
            self.tracer("Paragraph (leaving)")
            if frame.kind is ContainerKind.ITEM:
                if frame.first_paragraph:
                    frame.first_paragraph = False
                else:
                    self.cr()
                return
            self.cr()

    def _process_block_quote(self, node: Node, entering: bool) -> None:
        if entering:
            self.tracer("BlockQuote (entering)")
            margin = self.pdf.get_left_margin()
            self._push(
                ContainerKind.BLOCK_QUOTE,
                self.styles.blockquote,
                left_margin=margin + self.styles.indent,
                restore_margin=margin,
            )
            self.pdf.set_left_margin(margin + self.styles.indent)
        else:
            self.tracer("BlockQuote (leaving)")
            frame = self.cs.pop()
            self.pdf.set_left_margin(frame.restore_margin)
            self.cr()

    def _process_heading(self, node: Node, entering: bool) -> None:
        if entering:
            self.tracer(f"Heading ({node.level}, entering)", node.heading_id)
            self.cr()
            style = self.styles.heading(node.level)
            self.current_heading_style = style
            self._push(ContainerKind.HEADING, style, destination=f"#{node.heading_id}")
        else:
            self.tracer("Heading (leaving)")
            self.current_heading_style = None
            self.cr()
            self.cs.pop()

    def _process_horizontal_rule(self, node: Node, entering: bool) -> None:
        self.tracer("HorizontalRule")
        self.cr()
        x, y = self.pdf.get_xy()
        _, _, right_margin, _ = self.pdf.get_margins()
        width, _ = self.pdf.get_page_size()
        right = width - right_margin
        self.tracer("... From X,Y", f"{x},{y}")
        self.tracer("...   To X,Y", f"{right},{y}")
        self.pdf.move_to(x, y)
        self.pdf.line_to(right, y)
        self.pdf.line_to(right, y + HR_THICKNESS)
        self.pdf.line_to(x, y + HR_THICKNESS)
        self.pdf.close_path()
        self.pdf.set_fill_color(colors.rule)
        self.pdf.draw_path("F")
        self.cr()

    def _process_html_block(self, node: Node, entering: bool) -> None:
        self.tracer("HTMLBlock", node.literal)
        self.cr()
        style = self.styles.backtick
        self.pdf.set_style(style)
        self.pdf.set_fill_color(style.fill)
        self.pdf.cell(0, style.line_height, node.literal.rstrip("\n"), border="1", ln=1, align="LT", fill=True)
        self.cr()

    def _process_html_span(self, node: Node, entering: bool) -> None:
        self.tracer("HTMLSpan", node.literal)

    def _process_table(self, node: Node, entering: bool) -> None:
        if entering:
            self.tracer("Table (entering)")
            self.cr()
            self._push(ContainerKind.TABLE, self.styles.theader, table=TableLayout())
        else:
            table = self._table()
            if self.pdf.get_xy()[0] > self.pdf.get_left_margin():
                # Header-only tables have no body leave to end the last row
                self.pdf.ln()
            self.pdf.cell(table.total_width, 0, "", border="T")
            self.cs.pop()
            self.tracer("Table (leaving)")
            self.cr()

    def _process_table_head(self, node: Node, entering: bool) -> None:
        if entering:
            self.tracer("TableHead (entering)")
            self._push(ContainerKind.TABLE_HEAD, self.styles.theader)
            self._table().cell_widths = []
        else:
            self.cs.pop()
            self.tracer("TableHead (leaving)")

    def _process_table_body(self, node: Node, entering: bool) -> None:
        if entering:
            self.tracer("TableBody (entering)")
            self._push(ContainerKind.TABLE_BODY, self.styles.tbody)
        else:
            self.cs.pop()
            self.tracer("TableBody (leaving)")
            self.pdf.ln()

    def _process_table_row(self, node: Node, entering: bool) -> None:
        if entering:
            self.tracer("TableRow (entering)")
            style = self.styles.tbody
            if self.cs.peek().kind is ContainerKind.TABLE_HEAD:
                style = self.styles.theader
            self.pdf.ln()
            self._table().current_column = 0
            self._push(ContainerKind.TABLE_ROW, style)
        else:
            self.cs.pop()
            self.tracer("TableRow (leaving)")
            table = self._table()
            table.fill = not table.fill

    def _process_table_cell(self, node: Node, entering: bool) -> None:
        if entering:
            self.tracer("TableCell (entering)")
            if node.is_header:
                self.pdf.set_draw_color(colors.table_border)
                self.pdf.set_line_width(TABLE_BORDER_WIDTH)
                style = self.styles.theader
            else:
                style = self.styles.tbody
            self.pdf.set_style(style)
            self._push(ContainerKind.TABLE_CELL, style, is_header=node.is_header)
        else:
            frame = self.cs.pop()
            self._draw_table_cell(frame)
            self.tracer("TableCell (leaving)")
            self._table().current_column += 1

    def _draw_table_cell(self, frame: ContainerState) -> None:
        """Draw the cell box, then its text runs each in their own style."""
        table = self._table()
        style = frame.text_style
        runs = [run for run in frame.cell_runs if run.text]
        text_width = 0.0
        for run in runs:
            self.pdf.set_style(run.style)
            text_width += self.pdf.string_width(run.text)

        self.pdf.set_style(style)
        self.pdf.set_fill_color(style.fill)
        height = style.line_height
        if frame.is_header:
            width = text_width + 2 * self.em
            table.record_width(width)
            self.tracer("... table header cell", f"Width={width}, height={height}")
            self.pdf.cell(width, height, "", border="1", fill=True)
            offset = (width - text_width) / 2
        else:
            width = table.column_width()
            self.tracer("... table body cell", f"Width={width}, height={height}")
            self.pdf.cell(width, height, "", border="LR", fill=table.fill)
            offset = CELL_PADDING_EMS * self.em

        end_x, y = self.pdf.get_xy()
        self.pdf.set_x(end_x - width + offset)
        for run in runs:
            self.write(run.style, run.text, link=run.link, url=run.url)
        self.pdf.set_xy(end_x, y)


def build_canvas(options: RenderOptions) -> ReportLabCanvas:
    """Create a ReportLab canvas configured from render options."""
    pdf = ReportLabCanvas(
        page_size=page_config.page_size(options.page_size, options.orientation == "landscape"),
        margin=page_config.mm_to_points(options.margin_mm),
        title=options.title,
        author=options.author,
    )
    if options.font_files is not None:
        pdf.register_font(
            options.font_family,
            options.font_files.regular,
            bold=options.font_files.bold,
            italic=options.font_files.italic,
            bold_italic=options.font_files.bold_italic,
        )
    return pdf


def render_markdown(text: str, options: Optional[RenderOptions] = None) -> bytes:
    """
    Render markdown text to PDF bytes.

    Args:
        text: Markdown source
        options: Page, font and image settings

    Returns:
        PDF bytes
    """
    return render_markdown_with_report(text, options)[0]


def render_markdown_with_report(text: str, options: Optional[RenderOptions] = None) -> Tuple[bytes, List[str]]:
    """Render markdown and also return the image destinations that were skipped."""
    pdf, skipped = _render_to_canvas(text, options or RenderOptions())
    return pdf.output(), skipped


def render_file(source: Union[str, Path], target: Union[str, Path],
                options: Optional[RenderOptions] = None) -> Path:
    """
    Render a markdown file into a PDF file.

    Raises:
        CanvasError: If the PDF cannot be written to target
    """
    source = Path(source)
    options = options or RenderOptions()
    if options.title is None:
        options = options.model_copy(update={"title": source.stem})
    pdf, skipped = _render_to_canvas(source.read_text(encoding="utf-8"), options)
    target = pdf.save(target)
    logger.info(f"Rendered {source.name} to {target} ({len(skipped)} images skipped)")
    return target


def _render_to_canvas(text: str, options: RenderOptions) -> Tuple[ReportLabCanvas, List[str]]:
    pdf = build_canvas(options)
    renderer = PdfRenderer(
        pdf,
        styles=StyleRegistry.default(family=options.font_family),
        image_path_prefix=options.image_path_prefix,
        image_path_alternative_prefix=options.image_path_alternative_prefix,
    )
    renderer.render(parse_markdown(text))
    return pdf, list(renderer.skipped_images)
