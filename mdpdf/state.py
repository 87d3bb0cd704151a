"""
Formatting state owned by one render pass.

The container stack holds one frame per nested formatting scope. Table
layout state hangs off the table frame and table cells buffer their text
runs until the cell is drawn. The anchor registry maps link destinations
to canvas link handles for the whole document.

License: MIT
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from mdpdf.exceptions import StackUnderflowError
from mdpdf.styles import FontStyle, Style


class ContainerKind(Enum):
    """Node kinds that push a frame."""
    DOCUMENT = "document"
    HEADING = "heading"
    LIST = "list"
    ITEM = "item"
    LINK = "link"
    BLOCK_QUOTE = "block_quote"
    TABLE = "table"
    TABLE_HEAD = "table_head"
    TABLE_BODY = "table_body"
    TABLE_ROW = "table_row"
    TABLE_CELL = "table_cell"


class ListKind(Enum):
    NOT_A_LIST = "not_a_list"
    UNORDERED = "unordered"
    ORDERED = "ordered"
    DEFINITION = "definition"


@dataclass
class TableLayout:
    """Column widths and row shading for the table being rendered."""
    cell_widths: List[float] = field(default_factory=list)
    current_column: int = 0
    fill: bool = False

    @property
    def total_width(self) -> float:
        return sum(self.cell_widths)

    def record_width(self, width: float) -> None:
        """Record the width of the current header column."""
        self.cell_widths.append(width)

    def column_width(self) -> float:
        return self.cell_widths[self.current_column]


@dataclass
class TextRun:
    """A piece of cell text with the style and link active when it was read."""
    style: Style
    text: str
    link: Optional[object] = None
    url: Optional[str] = None


@dataclass
class ContainerState:
    """One formatting scope on the container stack."""
    kind: ContainerKind
    text_style: Style
    left_margin: float
    restore_margin: float = 0.0
    list_kind: ListKind = ListKind.NOT_A_LIST
    item_number: int = 0
    first_paragraph: bool = False
    destination: str = ""
    is_header: bool = False
    table: Optional[TableLayout] = None
    cell_runs: List[TextRun] = field(default_factory=list)
    style_depth: Dict[FontStyle, int] = field(default_factory=dict)

    def push_flag(self, flag: FontStyle) -> None:
        """Turn a style flag on, counting nested toggles."""
        self.style_depth[flag] = self.style_depth.get(flag, 0) + 1
        self.text_style = self.text_style.with_flag(flag)

    def pop_flag(self, flag: FontStyle) -> None:
        """Turn a style flag off once the outermost toggle leaves."""
        depth = self.style_depth.get(flag, 0) - 1
        if depth > 0:
            self.style_depth[flag] = depth
            return
        self.style_depth.pop(flag, None)
        self.text_style = self.text_style.without_flag(flag)


class ContainerStack:
    """Stack of formatting frames; the root frame is never popped."""

    def __init__(self, root: ContainerState):
        self._frames: List[ContainerState] = [root]

    def __len__(self) -> int:
        return len(self._frames)

    @property
    def depth(self) -> int:
        return len(self._frames)

    def push(self, frame: ContainerState) -> None:
        self._frames.append(frame)

    def pop(self) -> ContainerState:
        if len(self._frames) < 2:
            raise StackUnderflowError()
        return self._frames.pop()

    def peek(self) -> ContainerState:
        return self._frames[-1]

    def parent(self) -> ContainerState:
        """Return the frame directly below the top."""
        return self._frames[-2]

    def nearest(self, kind: ContainerKind) -> Optional[ContainerState]:
        """Return the innermost frame of the given kind, if any."""
        for frame in reversed(self._frames):
            if frame.kind is kind:
                return frame
        return None


class AnchorRegistry:
    """
    Maps link destinations and heading ids to canvas link handles.

    A handle is allocated on first reference and reused afterwards, so
    forward and backward references to the same target share one handle.
    """

    def __init__(self, canvas):
        self._canvas = canvas
        self._links: Dict[str, object] = {}

    def resolve(self, key: str) -> object:
        if key not in self._links:
            self._links[key] = self._canvas.add_link()
        return self._links[key]
