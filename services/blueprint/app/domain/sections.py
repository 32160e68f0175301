"""Split markdown documents into heading-delimited sections and back."""
from __future__ import annotations

from typing import Iterable, Sequence

from .errors import SectionNotFoundError, SectionReconstructionError
from .types import Section

INTRODUCTION_TITLE = "Introduction"
FULL_DOCUMENT_TITLE = "Full Document"
_HEADING_PREFIXES = ("# ", "## ")


def is_section_heading(line: str) -> bool:
    return line.startswith(_HEADING_PREFIXES)


def _heading_title(line: str) -> str:
    return line.lstrip("#").strip()


def split(markdown: str) -> list[Section]:
    """Split ``markdown`` on level-1/level-2 headings.

    Each section's content keeps its own heading line. Text before the first
    heading becomes an "Introduction" section and a document with no headings
    becomes a single "Full Document" section.
    """
    if not markdown:
        return []

    lines = markdown.split("\n")
    if not any(is_section_heading(line) for line in lines):
        return [Section(id="sec-0", title=FULL_DOCUMENT_TITLE, content=markdown, order=0)]

    chunks: list[tuple[str, list[str]]] = []
    for line in lines:
        if is_section_heading(line):
            chunks.append((_heading_title(line), [line]))
        elif not chunks:
            chunks.append((INTRODUCTION_TITLE, [line]))
        else:
            chunks[-1][1].append(line)

    sections = [
        Section(id=f"sec-{idx}", title=title, content="\n".join(buffer), order=idx)
        for idx, (title, buffer) in enumerate(chunks)
    ]
    if join(sections) != markdown:
        raise SectionReconstructionError("Section split did not round-trip the document")
    return sections


def join(sections: Iterable[Section]) -> str:
    return "\n".join(section.content for section in sections)


def find_section(sections: Sequence[Section], section_id: str) -> Section:
    for section in sections:
        if section.id == section_id:
            return section
    raise SectionNotFoundError(f"Section {section_id} not found")


def replace_section(sections: Sequence[Section], section_id: str, content: str) -> list[Section]:
    """Return a copy of ``sections`` with one section's content replaced.

    Order and identity of every other section are preserved.
    """
    find_section(sections, section_id)
    return [
        Section(id=s.id, title=s.title, content=content, order=s.order) if s.id == section_id else s
        for s in sections
    ]


__all__ = [
    "FULL_DOCUMENT_TITLE",
    "INTRODUCTION_TITLE",
    "find_section",
    "is_section_heading",
    "join",
    "replace_section",
    "split",
]
