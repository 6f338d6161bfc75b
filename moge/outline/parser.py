"""Extract volume / chapter / scene structure from AI-generated Markdown outlines."""

import logging
import re

from .schema import Chapter, ParsedOutline, Volume
from .tree import MarkdownTreeParser, Node, parse_markdown_to_tree, text_content

logger = logging.getLogger(__name__)

# Numeral token: ASCII digits, full-width digits and CJK numerals (detected, never evaluated)
NUMERAL = "[0-9０-９一二三四五六七八九十百千万]+"

VOLUME_RE = re.compile(rf"^第{NUMERAL}卷\s*(.*?)(?:<.*>)?$")
CHAPTER_RE = re.compile(rf"^第{NUMERAL}章\s*(.*?)(?:<.*>)?$")
SCENE_HEADING_RE = re.compile(rf"^场景{NUMERAL}(.*)$")
SCENE_MARKER_RE = re.compile(rf"^场景{NUMERAL}$")

ANNOTATION_RE = re.compile(r"<.*>.*$")
TRAILING_ANNOTATION_RE = re.compile(r"<[^<>]*>\s*$")
LEADING_COLON_RE = re.compile(r"^\s*[:：]")

VOLUME_DEPTH = 3
CHAPTER_DEPTH = 4
SCENE_DEPTH = 5

# Raw volume trailers longer than this become the volume description
DESCRIPTION_MIN_LENGTH = 10


class OutlineTooLargeError(ValueError):
    """Raised when an outline exceeds the configured size limit."""


def clean_title(text: str) -> str:
    """Strip a trailing `<...>` annotation (and anything after it), then trim."""
    return ANNOTATION_RE.sub("", text).strip()


def clean_scene(text: str) -> str:
    """Strip a `<...>` annotation that ends the text, then trim."""
    return TRAILING_ANNOTATION_RE.sub("", text).strip()


def _extract_description(trailer: str) -> str | None:
    return trailer if len(trailer) > DESCRIPTION_MIN_LENGTH else None


class _OutlineWalk:
    """Mutable state for a single traversal."""

    def __init__(self) -> None:
        self.result = ParsedOutline()
        self.current_volume: Volume | None = None
        self.current_chapter: Chapter | None = None

    def visit(self, node: Node) -> None:
        if node.type == "heading":
            self._on_heading(node)
        elif node.type == "list_item":
            self._on_list_item(node)

        for child in node.children:
            self.visit(child)

    def finish(self) -> ParsedOutline:
        self._flush_chapter()
        self._flush_volume()
        return self.result

    def _flush_chapter(self) -> None:
        if self.current_chapter is None:
            return
        if self.current_volume is not None:
            self.current_volume.chapters.append(self.current_chapter)
        else:
            self.result.direct_chapters.append(self.current_chapter)
        self.current_chapter = None

    def _flush_volume(self) -> None:
        if self.current_volume is not None:
            self.result.volumes.append(self.current_volume)
            self.current_volume = None

    def _on_heading(self, node: Node) -> None:
        text = text_content(node).strip()

        if node.depth == VOLUME_DEPTH:
            match = VOLUME_RE.match(text)
            if match:
                self._flush_chapter()
                self._flush_volume()
                title = clean_title(text)
                logger.debug("Parsed volume: %r", title)
                self.current_volume = Volume(
                    title=title,
                    description=_extract_description(match.group(1)),
                )

        elif node.depth == CHAPTER_DEPTH:
            if CHAPTER_RE.match(text):
                self._flush_chapter()
                title = clean_title(text)
                logger.debug("Parsed chapter: %r", title)
                self.current_chapter = Chapter(title=title)

        elif node.depth == SCENE_DEPTH:
            match = SCENE_HEADING_RE.match(text)
            if match and self.current_chapter is not None:
                scene = clean_scene(match.group(1))
                if scene:
                    self.current_chapter.scenes.append(scene)

    def _on_list_item(self, node: Node) -> None:
        if self.current_chapter is None:
            return

        # Only the item's own paragraphs; nested lists are visited on their own
        for paragraph in (c for c in node.children if c.type == "paragraph"):
            marker = _find_scene_marker(paragraph)
            if marker is None:
                continue

            full_text = text_content(paragraph).strip()
            if full_text.startswith(marker):
                full_text = LEADING_COLON_RE.sub("", full_text[len(marker) :], count=1)
            description = full_text.strip()
            if description:
                self.current_chapter.scenes.append(f"{marker}：{description}")
            return


def _find_scene_marker(paragraph: Node) -> str | None:
    """Return the text of a bold span that is exactly a scene marker, e.g. `场景1`."""
    stack = list(reversed(paragraph.children))
    while stack:
        node = stack.pop()
        if node.type == "strong":
            marker = text_content(node).strip()
            if SCENE_MARKER_RE.match(marker):
                return marker
        stack.extend(reversed(node.children))
    return None


def walk_outline_tree(root: Node) -> ParsedOutline:
    """
    Build a ParsedOutline from an already parsed document tree.

    Level-3 headings open volumes, level-4 headings open chapters, level-5
    headings and bold `场景N` markers in list items add scenes to the open chapter.
    Headings that don't match their level's pattern are skipped.
    """
    walk = _OutlineWalk()
    walk.visit(root)
    return walk.finish()


def parse_outline_markdown(
    markdown: str,
    *,
    tree_parser: MarkdownTreeParser = parse_markdown_to_tree,
    max_chars: int | None = None,
) -> ParsedOutline:
    """
    Parse an AI-generated Markdown outline into volumes, chapters and scenes.

    Parsing is best-effort: any failure while building or walking the tree is
    logged and an empty outline is returned instead.

    Args:
        markdown: Markdown outline text
        tree_parser: Markdown-to-tree function (swappable for tests)
        max_chars: Optional input size limit

    Returns:
        ParsedOutline (empty if nothing was recognized)

    Raises:
        OutlineTooLargeError: Input is longer than max_chars
    """
    if max_chars is not None and len(markdown) > max_chars:
        raise OutlineTooLargeError(
            f"Outline is {len(markdown):,} characters, limit is {max_chars:,}"
        )

    try:
        result = walk_outline_tree(tree_parser(markdown))
    except Exception:
        logger.exception("Failed to parse Markdown outline")
        return ParsedOutline()

    logger.debug(
        "Parsed outline: %d volumes, %d direct chapters",
        len(result.volumes),
        len(result.direct_chapters),
    )
    return result


def validate_outline(structure: ParsedOutline) -> bool:
    """
    Check that a parsed outline is usable.

    Returns False when nothing was extracted, or when a volume has an empty
    title or no chapters.
    """
    if not structure.volumes and not structure.direct_chapters:
        return False

    for volume in structure.volumes:
        if not volume.title or not volume.chapters:
            return False

    return True
