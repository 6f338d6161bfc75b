"""Outline parsing and rendering."""

from .export import clean_markdown, number_to_chinese, outline_to_markdown, outline_to_text
from .parser import (
    OutlineTooLargeError,
    clean_scene,
    clean_title,
    parse_outline_markdown,
    validate_outline,
    walk_outline_tree,
)
from .schema import Chapter, ParsedOutline, Volume
from .tree import Node, parse_markdown_to_tree, text_content

__all__ = [
    "Chapter",
    "Node",
    "OutlineTooLargeError",
    "ParsedOutline",
    "Volume",
    "clean_markdown",
    "clean_scene",
    "clean_title",
    "number_to_chinese",
    "outline_to_markdown",
    "outline_to_text",
    "parse_markdown_to_tree",
    "parse_outline_markdown",
    "text_content",
    "validate_outline",
    "walk_outline_tree",
]
