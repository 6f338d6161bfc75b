"""Generic Markdown document tree and the CommonMark adapter that builds it."""

from collections.abc import Callable, Iterator
from dataclasses import dataclass, field

from markdown_it import MarkdownIt
from markdown_it.tree import SyntaxTreeNode

# Any callable turning Markdown text into a Node tree can stand in for the default parser
MarkdownTreeParser = Callable[[str], "Node"]

_NODE_TYPES = {
    "bullet_list": "list",
    "ordered_list": "list",
    "em": "emphasis",
    "hr": "thematic_break",
}

# Leaf tokens and the Node type their content becomes
_LEAF_TYPES = {
    "text": "text",
    "html_inline": "text",
    "code_inline": "inline_code",
    "fence": "code",
    "code_block": "code",
    "html_block": "html",
}

_BREAK_TYPES = {"softbreak", "hardbreak"}

_md = MarkdownIt("commonmark")


@dataclass
class Node:
    """A node of the document tree."""

    type: str
    children: list["Node"] = field(default_factory=list)
    value: str | None = None
    depth: int | None = None


def text_node(value: str) -> Node:
    """Create a text leaf."""
    return Node(type="text", value=value)


def iter_nodes(node: Node) -> Iterator[Node]:
    """Yield node and all descendants, depth-first pre-order."""
    yield node
    for child in node.children:
        yield from iter_nodes(child)


def text_content(node: Node) -> str:
    """Concatenate the values of all leaves under node."""
    if node.value is not None:
        return node.value
    return "".join(text_content(child) for child in node.children)


def find_first(node: Node, node_type: str) -> Node | None:
    """Return the first descendant (or node itself) of the given type."""
    for candidate in iter_nodes(node):
        if candidate.type == node_type:
            return candidate
    return None


def _convert_children(syntax_node: SyntaxTreeNode) -> list[Node]:
    children: list[Node] = []
    for child in syntax_node.children:
        # Inline containers are flattened into their block
        if child.type == "inline":
            children.extend(_convert_children(child))
        else:
            children.append(_convert(child))
    return children


def _convert(syntax_node: SyntaxTreeNode) -> Node:
    node_type = syntax_node.type

    if node_type in _LEAF_TYPES:
        return Node(type=_LEAF_TYPES[node_type], value=syntax_node.content)
    if node_type in _BREAK_TYPES:
        return text_node("\n")

    if node_type == "heading":
        node = Node(type="heading", depth=int(syntax_node.tag[1:]))
    else:
        node = Node(type=_NODE_TYPES.get(node_type, node_type))
    node.children = _convert_children(syntax_node)
    return node


def parse_markdown_to_tree(text: str) -> Node:
    """
    Parse Markdown text into a generic document tree.

    Uses markdown-it-py with the CommonMark preset, so a list may interrupt a
    paragraph and fenced code stays code. List items hold their inline text
    inside a paragraph child, whether the list is tight or loose.

    Args:
        text: Markdown source

    Returns:
        Root node (type "root"); empty when the text is blank
    """
    return _convert(SyntaxTreeNode(_md.parse(text)))
