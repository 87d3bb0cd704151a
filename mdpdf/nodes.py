"""
Document tree consumed by the renderer.

Nodes are produced by the markdown parser and walked depth first. Container
nodes are visited twice (entering and leaving); leaf nodes once.

License: MIT
"""

from dataclasses import dataclass, field
from enum import Enum, Flag, auto
from typing import Iterator, List, Optional, Tuple


class NodeKind(Enum):
    """Node types produced by the parser."""
    DOCUMENT = "document"
    PARAGRAPH = "paragraph"
    HEADING = "heading"
    TEXT = "text"
    SOFTBREAK = "softbreak"
    HARDBREAK = "hardbreak"
    EMPH = "emph"
    STRONG = "strong"
    DEL = "del"
    LINK = "link"
    IMAGE = "image"
    CODE = "code"
    CODE_BLOCK = "code_block"
    HTML_BLOCK = "html_block"
    HTML_SPAN = "html_span"
    BLOCK_QUOTE = "block_quote"
    LIST = "list"
    ITEM = "item"
    HORIZONTAL_RULE = "horizontal_rule"
    TABLE = "table"
    TABLE_HEAD = "table_head"
    TABLE_BODY = "table_body"
    TABLE_ROW = "table_row"
    TABLE_CELL = "table_cell"


class ListType(Flag):
    """List flags carried by list and item nodes."""
    UNORDERED = 0
    ORDERED = auto()
    DEFINITION = auto()
    TERM = auto()


LEAF_KINDS = frozenset({
    NodeKind.TEXT,
    NodeKind.SOFTBREAK,
    NodeKind.HARDBREAK,
    NodeKind.CODE,
    NodeKind.CODE_BLOCK,
    NodeKind.HTML_BLOCK,
    NodeKind.HTML_SPAN,
    NodeKind.HORIZONTAL_RULE,
})


@dataclass(eq=False)
class Node:
    """A typed node with literal content and kind-specific data."""
    kind: NodeKind
    literal: str = ""
    children: List["Node"] = field(default_factory=list)
    parent: Optional["Node"] = field(default=None, repr=False)

    # Heading
    level: int = 0
    heading_id: str = ""

    # List / item
    list_flags: ListType = ListType.UNORDERED
    start: int = 1

    # Link / image
    destination: str = ""
    title: str = ""

    # Table cell
    is_header: bool = False

    @property
    def is_container(self) -> bool:
        return self.kind not in LEAF_KINDS

    def append(self, child: "Node") -> "Node":
        child.parent = self
        self.children.append(child)
        return child

    def walk(self) -> Iterator[Tuple["Node", bool]]:
        """Yield (node, entering) events in document order."""
        stack: List[Tuple[Node, bool]] = [(self, True)]
        while stack:
            node, entering = stack.pop()
            yield node, entering
            if entering and node.is_container:
                stack.append((node, False))
                for child in reversed(node.children):
                    stack.append((child, True))
