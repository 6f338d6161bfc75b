"""Render parsed outlines as Markdown or plain text."""

import re
from datetime import datetime

from .schema import Chapter, ParsedOutline

CHINESE_DIGITS = ["零", "一", "二", "三", "四", "五", "六", "七", "八", "九", "十"]

NO_SCENES_PLACEHOLDER = "（本章暂无场景）"

# Scenes that came from `- **场景N**：...` list items keep their marker
_MARKED_SCENE_RE = re.compile(r"^(场景[0-9０-９一二三四五六七八九十百千万]+)：(.*)$")

_MARKDOWN_CLEANUP = [
    (re.compile(r"```[^`]*```"), ""),
    (re.compile(r"#{1,6}\s"), ""),
    (re.compile(r"\*\*([^*]+)\*\*"), r"\1"),
    (re.compile(r"\*([^*]+)\*"), r"\1"),
    (re.compile(r"`([^`]+)`"), r"\1"),
    (re.compile(r"!\[([^\]]*)\]\([^)]+\)"), ""),
    (re.compile(r"\[([^\]]+)\]\([^)]+\)"), r"\1"),
    (re.compile(r"^[-*+]\s", re.MULTILINE), ""),
    (re.compile(r"^\d+\.\s", re.MULTILINE), ""),
    (re.compile(r"^>\s", re.MULTILINE), ""),
    (re.compile(r"\n{3,}"), "\n\n"),
]


def number_to_chinese(num: int) -> str:
    """Format 0-99 as a Chinese numeral (十二, 二十一); larger numbers stay decimal."""
    if 0 <= num <= 10:
        return CHINESE_DIGITS[num]
    if 10 < num < 20:
        return "十" + CHINESE_DIGITS[num - 10]
    if 20 <= num < 100:
        tens, ones = divmod(num, 10)
        return CHINESE_DIGITS[tens] + "十" + (CHINESE_DIGITS[ones] if ones else "")
    return str(num)


def clean_markdown(content: str) -> str:
    """Remove Markdown formatting marks, keeping the readable text."""
    for pattern, replacement in _MARKDOWN_CLEANUP:
        content = pattern.sub(replacement, content)
    return content


def _scene_to_markdown(index: int, scene: str) -> str:
    marked = _MARKED_SCENE_RE.match(scene)
    if marked:
        return f"- **{marked.group(1)}**：{marked.group(2)}"
    return f"##### 场景{index} {scene}"


def _chapter_to_markdown(chapter: Chapter) -> list[str]:
    lines = [f"#### {chapter.title}"]
    for i, scene in enumerate(chapter.scenes, start=1):
        lines.append(_scene_to_markdown(i, scene))
    lines.append("")
    return lines


def outline_to_markdown(outline: ParsedOutline, title: str | None = None) -> str:
    """
    Render an outline using the heading convention the parser reads.

    Volumes become `###`, chapters `####` and scenes `##### 场景N`, so
    parsing the result gives back the same structure.
    """
    lines: list[str] = []
    if title:
        lines += [f"# {title}", ""]

    for chapter in outline.direct_chapters:
        lines += _chapter_to_markdown(chapter)

    for volume in outline.volumes:
        lines += [f"### {volume.title}", ""]
        for chapter in volume.chapters:
            lines += _chapter_to_markdown(chapter)

    return "\n".join(lines).rstrip() + "\n"


def _chapter_to_text(chapter: Chapter) -> list[str]:
    lines = [chapter.title, "-" * 20, ""]
    if chapter.scenes:
        lines += [f"  {scene}" for scene in chapter.scenes]
    else:
        lines.append(NO_SCENES_PLACEHOLDER)
    lines.append("")
    return lines


def outline_to_text(
    outline: ParsedOutline,
    title: str | None = None,
    include_stats: bool = False,
) -> str:
    """Render an outline as plain text, direct chapters first, then each volume."""
    lines: list[str] = []

    if title:
        lines += [title, "=" * (len(title) * 2), ""]

    if include_stats:
        scene_count = sum(
            len(c.scenes)
            for c in outline.direct_chapters + [c for v in outline.volumes for c in v.chapters]
        )
        lines += [
            "【大纲信息】",
            f"卷数：{len(outline.volumes)} 卷",
            f"章节数：{outline.chapter_count()} 章",
            f"场景数：{scene_count} 个",
            f"导出时间：{datetime.now().strftime('%Y-%m-%d %H:%M')}",
            "",
            "=" * 40,
            "",
        ]

    for chapter in outline.direct_chapters:
        lines += _chapter_to_text(chapter)

    for volume in outline.volumes:
        lines += ["", volume.title, "=" * 20, ""]
        if volume.description:
            lines += [volume.description, ""]
        for chapter in volume.chapters:
            lines += _chapter_to_text(chapter)

    return "\n".join(lines).rstrip() + "\n"
