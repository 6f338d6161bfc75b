"""Pydantic schemas for parsed outline structures."""

from pydantic import BaseModel, ConfigDict, Field


class Chapter(BaseModel):
    """A chapter and its scene descriptions."""

    title: str
    scenes: list[str] = Field(default_factory=list)


class Volume(BaseModel):
    """A volume grouping chapters."""

    title: str
    description: str | None = None
    chapters: list[Chapter] = Field(default_factory=list)


class ParsedOutline(BaseModel):
    """Root of a parsed outline: volumes plus chapters outside any volume."""

    model_config = ConfigDict(populate_by_name=True)

    volumes: list[Volume] = Field(default_factory=list)
    direct_chapters: list[Chapter] = Field(default_factory=list, alias="directChapters")

    def is_empty(self) -> bool:
        """Check whether nothing was extracted."""
        return not self.volumes and not self.direct_chapters

    def chapter_count(self) -> int:
        """Count chapters across volumes and direct chapters."""
        return len(self.direct_chapters) + sum(len(v.chapters) for v in self.volumes)
