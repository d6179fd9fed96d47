"""
Traversal of eCFR structure trees (title -> chapter -> part -> subpart -> section)
to locate the document URL of every section under a chapter.
"""
import re
from dataclasses import dataclass, field

from ecfr_proxy import urls

SECTION = "section"

# Containers that may sit between a title and its chapters
_CHAPTER_PARENTS = {"title", "subtitle"}


@dataclass(frozen=True)
class StructureNode:
    type: str
    identifier: str | None = None
    label: str | None = None
    children: list["StructureNode"] = field(default_factory=list)

    @classmethod
    def from_json(cls, data: dict) -> "StructureNode":
        identifier = data.get("identifier")
        return cls(
            type=data.get("type") or "",
            identifier=str(identifier) if identifier else None,
            label=data.get("label"),
            children=[cls.from_json(child) for child in data.get("children") or []],
        )

    @property
    def segment(self) -> str:
        return f"{self.type}-{self.identifier}"


def _label_mentions(node: StructureNode, chapter: str) -> bool:
    if not node.label:
        return False
    return re.search(rf"(?<!\w){re.escape(chapter)}(?!\w)", node.label) is not None


def _candidates(node: StructureNode, path: list[str]):
    """Chapter candidates with the path segments of the containers above them"""
    for child in node.children:
        if child.type in _CHAPTER_PARENTS:
            yield from _candidates(child, path + [child.segment] if child.identifier else path)
        else:
            yield child, path


def _chapter_paths(root: StructureNode, chapter: str) -> list[tuple[StructureNode, list[str]]]:
    candidates = list(_candidates(root, []))
    exact = [(node, path) for node, path in candidates if node.identifier == chapter]
    if exact:
        return exact
    return [(node, path) for node, path in candidates if _label_mentions(node, chapter)]


def find_chapters(root: StructureNode, chapter: str) -> list[StructureNode]:
    """
    Children of the title root (or of its subtitles) that match a chapter token.

    An exact identifier match wins. Otherwise nodes whose label mentions the
    token as a whole word are used, so "I" does not match "Chapter II".
    """
    return [node for node, _path in _chapter_paths(root, chapter)]


def _walk_sections(node: StructureNode, path: list[str]):
    if node.identifier:
        path = path + [node.segment]
    if node.type == SECTION:
        if node.identifier:
            yield path
        return
    for child in node.children:
        yield from _walk_sections(child, path)


def section_urls(root: StructureNode, title, chapter: str) -> list[str]:
    """Document URLs of every section below the given chapter, in document order"""
    found = []
    seen = set()
    for chapter_node, parents in _chapter_paths(root, chapter):
        for path in _walk_sections(chapter_node, [f"title-{title}"] + parents):
            url = f"{urls.CURRENT_URL}/{'/'.join(path)}"
            if url not in seen:
                seen.add(url)
                found.append(url)
    return found
