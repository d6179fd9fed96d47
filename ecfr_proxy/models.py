"""
Typed views of the eCFR metadata the proxy caches.

Upstream payloads are extracted best-effort: missing fields become None or
empty lists rather than errors.
"""
import re
from dataclasses import asdict, dataclass, field

RESERVED = "reserved"

_SLUG_STRIP = re.compile(r"[^a-z0-9]+")


def slugify(name: str) -> str:
    return _SLUG_STRIP.sub("-", name.lower()).strip("-")


@dataclass(frozen=True)
class Title:
    number: int
    name: str
    latest_issue_date: str | None = None
    latest_amended_on: str | None = None
    up_to_date_as_of: str | None = None
    reserved: bool = False

    @classmethod
    def from_json(cls, data: dict) -> "Title":
        name = data.get("name") or ""
        return cls(
            number=int(data["number"]),
            name=name,
            latest_issue_date=data.get("latest_issue_date"),
            latest_amended_on=data.get("latest_amended_on"),
            up_to_date_as_of=data.get("up_to_date_as_of"),
            reserved=bool(data.get("reserved")) or name.strip().lower() == RESERVED,
        )

    @property
    def key(self) -> str:
        return str(self.number)

    def to_json(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class CfrReference:
    title: int
    chapter: str | None = None

    @classmethod
    def from_json(cls, data: dict) -> "CfrReference":
        chapter = data.get("chapter")
        return cls(title=int(data["title"]), chapter=str(chapter) if chapter else None)


@dataclass(frozen=True)
class Agency:
    slug: str
    name: str
    short_name: str | None = None
    display_name: str | None = None
    cfr_references: list[CfrReference] = field(default_factory=list)
    children: list["Agency"] = field(default_factory=list)

    @classmethod
    def from_json(cls, data: dict) -> "Agency":
        name = data.get("name") or data.get("display_name") or ""
        references = []
        for ref in data.get("cfr_references") or []:
            try:
                references.append(CfrReference.from_json(ref))
            except (KeyError, TypeError, ValueError):
                continue  # no usable title number
        return cls(
            slug=data.get("slug") or slugify(name),
            name=name,
            short_name=data.get("short_name"),
            display_name=data.get("display_name"),
            cfr_references=references,
            children=[cls.from_json(child) for child in data.get("children") or []],
        )

    def walk(self):
        """Yield this agency followed by all of its sub-agencies"""
        yield self
        for child in self.children:
            yield from child.walk()

    def to_json(self) -> dict:
        return asdict(self)
