"""
Markdown parsing into the renderer's node tree.

markdown-it-py does the parsing; this module maps its syntax tree onto
`Node` objects with the kind-specific data the layout handlers need.

License: MIT
"""

import logging
from typing import Optional

from markdown_it import MarkdownIt
from markdown_it.tree import SyntaxTreeNode
from mdit_py_plugins.anchors import anchors_plugin
from mdit_py_plugins.deflist import deflist_plugin

from mdpdf.nodes import ListType, Node, NodeKind

logger = logging.getLogger(__name__)

# markdown-it node types that map one-to-one onto a node kind
SIMPLE_KINDS = {
    "paragraph": NodeKind.PARAGRAPH,
    "blockquote": NodeKind.BLOCK_QUOTE,
    "em": NodeKind.EMPH,
    "strong": NodeKind.STRONG,
    "s": NodeKind.DEL,
    "hr": NodeKind.HORIZONTAL_RULE,
    "hardbreak": NodeKind.HARDBREAK,
    "table": NodeKind.TABLE,
    "thead": NodeKind.TABLE_HEAD,
    "tbody": NodeKind.TABLE_BODY,
    "tr": NodeKind.TABLE_ROW,
}

_MD_PARSER: Optional[MarkdownIt] = None


def build_markdown_parser() -> MarkdownIt:
    """Create the markdown-it parser with tables, anchors and definition lists."""
    md = MarkdownIt("commonmark", {"html": True})
    md.enable(["table", "strikethrough"])
    md.use(anchors_plugin, min_level=1, max_level=6)
    md.use(deflist_plugin)
    return md


def get_markdown_parser() -> MarkdownIt:
    global _MD_PARSER
    if _MD_PARSER is None:
        _MD_PARSER = build_markdown_parser()
    return _MD_PARSER


def parse_markdown(text: str) -> Node:
    """Parse markdown text and return the document node."""
    tokens = get_markdown_parser().parse(text)
    tree = SyntaxTreeNode(tokens)
    document = Node(NodeKind.DOCUMENT)
    _convert_children(tree, document)
    logger.debug(f"Parsed {len(tokens)} tokens into {len(document.children)} top-level nodes")
    return document


def _convert_children(source: SyntaxTreeNode, target: Node) -> None:
    for child in source.children:
        _convert(child, target)


def _convert(source: SyntaxTreeNode, parent: Node) -> None:
    node_type = source.type

    # Inline containers are transparent
    if node_type == "inline":
        _convert_children(source, parent)
        return

    if node_type == "text":
        # Delimiter runs can leave empty text tokens behind
        if not source.content:
            return
        parent.append(Node(NodeKind.TEXT, literal=source.content))
        return

    if node_type == "softbreak":
        parent.append(Node(NodeKind.SOFTBREAK))
        return

    if node_type == "code_inline":
        parent.append(Node(NodeKind.CODE, literal=source.content))
        return

    if node_type in ("fence", "code_block"):
        literal = source.content
        if literal.endswith("\n"):
            literal = literal[:-1]
        parent.append(Node(NodeKind.CODE_BLOCK, literal=literal))
        return

    if node_type == "html_block":
        parent.append(Node(NodeKind.HTML_BLOCK, literal=source.content))
        return

    if node_type == "html_inline":
        parent.append(Node(NodeKind.HTML_SPAN, literal=source.content))
        return

    node = _build_container(source)
    parent.append(node)
    _convert_children(source, node)


def _build_container(source: SyntaxTreeNode) -> Node:
    node_type = source.type
    attrs = source.attrs

    if node_type in SIMPLE_KINDS:
        return Node(SIMPLE_KINDS[node_type])

    if node_type == "heading":
        return Node(
            NodeKind.HEADING,
            level=int(source.tag[1]),
            heading_id=str(attrs.get("id", "")),
        )

    if node_type == "bullet_list":
        return Node(NodeKind.LIST, list_flags=ListType.UNORDERED)

    if node_type == "ordered_list":
        return Node(NodeKind.LIST, list_flags=ListType.ORDERED, start=int(attrs.get("start", 1)))

    if node_type == "list_item":
        flags = ListType.UNORDERED
        if source.parent is not None and source.parent.type == "ordered_list":
            flags = ListType.ORDERED
        return Node(NodeKind.ITEM, list_flags=flags)

    if node_type == "dl":
        return Node(NodeKind.LIST, list_flags=ListType.DEFINITION)

    if node_type == "dt":
        return Node(NodeKind.ITEM, list_flags=ListType.DEFINITION | ListType.TERM)

    if node_type == "dd":
        return Node(NodeKind.ITEM, list_flags=ListType.DEFINITION)

    if node_type == "link":
        return Node(
            NodeKind.LINK,
            destination=str(attrs.get("href", "")),
            title=str(attrs.get("title", "")),
        )

    if node_type == "image":
        return Node(
            NodeKind.IMAGE,
            destination=str(attrs.get("src", "")),
            title=str(attrs.get("title", "")),
        )

    if node_type in ("th", "td"):
        return Node(NodeKind.TABLE_CELL, is_header=node_type == "th")

    raise ValueError(f"Unsupported markdown node type: {node_type}")
