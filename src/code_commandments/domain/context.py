"""Per-document working state carried through a pipeline run."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Iterable, Mapping

from code_commandments.domain.text import TextLocator


def _frozen_map(values: Mapping[str, object] | None) -> Mapping:
    return MappingProxyType(dict(values or {}))


@dataclass(frozen=True)
class Region:
    """
    A tag-delimited substring of a document.

    start_offset/end_offset are absolute into the document text and bound the
    content strictly between the opening tag's '>' and the closing tag's '<'.
    """
    tag: str
    content: str
    start_offset: int
    end_offset: int
    open_tag_start: int = 0
    close_tag_end: int = 0
    attributes: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "attributes", _frozen_map(self.attributes))

    @property
    def length(self) -> int:
        return self.end_offset - self.start_offset

    def attribute(self, name: str, default: str | None = None) -> str | None:
        return self.attributes.get(name, default)

    def has_attribute(self, name: str) -> bool:
        return name in self.attributes

    def to_absolute(self, local_offset: int) -> int:
        """Translate an offset into content to an offset into the document."""
        return self.start_offset + local_offset


@dataclass(frozen=True)
class MatchRecord:
    """One match produced by a textual or structural matcher."""
    rule_tag: str
    text: str
    line: int
    offset: int | None = None
    captures: Mapping[str, str] = field(default_factory=dict)
    snippet: str | None = None
    pattern: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "captures", _frozen_map(self.captures))

    @property
    def is_structural(self) -> bool:
        return self.offset is None

    def capture(self, key: str | int, default: str = "") -> str:
        return self.captures.get(str(key), default)

    def has_capture(self, key: str | int) -> bool:
        return bool(self.captures.get(str(key)))


@dataclass(frozen=True)
class DeclaredParameter:
    name: str
    annotation: str | None = None
    has_default: bool = False
    line: int | None = None


@dataclass(frozen=True)
class DeclaredField:
    """Class-level attribute (annotated or assigned in the class body)."""
    name: str
    line: int
    annotation: str | None = None


@dataclass(frozen=True)
class DeclaredStatement:
    """
    A statement inside a member body.

    targets holds assigned names in dotted form ("self.user"); calls holds the
    dotted names of every call made in the statement ("self.repo.save").
    """
    kind: str
    line: int
    end_line: int
    source: str = ""
    targets: tuple[str, ...] = ()
    calls: tuple[str, ...] = ()

    def assigns_to(self, name: str) -> bool:
        return name in self.targets

    def calls_name(self, name: str) -> bool:
        return any(call == name or call.endswith("." + name) for call in self.calls)


@dataclass(frozen=True)
class DeclaredMember:
    """A callable member (method) of a declared entity."""
    name: str
    line: int
    end_line: int
    decorators: tuple[str, ...] = ()
    parameters: tuple[DeclaredParameter, ...] = ()
    statements: tuple[DeclaredStatement, ...] = ()
    is_async: bool = False

    @property
    def visibility(self) -> str:
        if self.is_magic or not self.name.startswith("_"):
            return "public"
        if self.name.startswith("__"):
            return "private"
        return "protected"

    @property
    def is_public(self) -> bool:
        return self.visibility == "public"

    @property
    def is_constructor(self) -> bool:
        return self.name == "__init__"

    @property
    def is_magic(self) -> bool:
        return len(self.name) > 4 and self.name.startswith("__") and self.name.endswith("__")

    @property
    def line_count(self) -> int:
        return self.end_line - self.line + 1

    def has_decorator(self, name: str) -> bool:
        return any(d == name or d.endswith("." + name) for d in self.decorators)


@dataclass(frozen=True)
class DeclaredEntity:
    """A named grouping of members (a class in Python documents)."""
    name: str
    line: int
    end_line: int
    bases: tuple[str, ...] = ()
    decorators: tuple[str, ...] = ()
    members: tuple[DeclaredMember, ...] = ()
    fields: tuple[DeclaredField, ...] = ()
    category: str | None = None

    def member(self, name: str) -> DeclaredMember | None:
        for member in self.members:
            if member.name == name:
                return member
        return None

    def has_field(self, name: str) -> bool:
        return any(f.name == name for f in self.fields)

    def extends(self, base: str) -> bool:
        return any(b == base or b.endswith("." + base) for b in self.bases)

    def with_category(self, category: str | None) -> "DeclaredEntity":
        return replace(self, category=category)


@dataclass(frozen=True)
class MemberRef:
    """A member together with the entity that declares it."""
    entity: DeclaredEntity
    member: DeclaredMember

    @property
    def qualified_name(self) -> str:
        return f"{self.entity.name}.{self.member.name}"


@dataclass(frozen=True)
class StatementRef:
    """A statement together with the member and entity that contain it."""
    entity: DeclaredEntity
    member: DeclaredMember
    statement: DeclaredStatement


@dataclass(frozen=True)
class DeclarationTree:
    """Structured declarations of a document; raw is the parser's own root node."""
    path: str
    entities: tuple[DeclaredEntity, ...] = ()
    imports: Mapping[str, str] = field(default_factory=dict)
    module_name: str = ""
    raw: object = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "imports", _frozen_map(self.imports))

    def imported(self, qualified_name: str) -> bool:
        return qualified_name in self.imports.values()

    def entity(self, name: str) -> DeclaredEntity | None:
        for entity in self.entities:
            if entity.name == name:
                return entity
        return None


@dataclass(frozen=True)
class Context:
    """
    Immutable per-document state.

    Stages never mutate a Context; every with_* method returns a copy with one
    collection replaced. regions and missing_regions together act as a cache so
    each region is scanned at most once per run.
    """
    path: str
    text: str
    declaration_tree: DeclarationTree | None = None
    regions: Mapping[str, Region] = field(default_factory=dict)
    missing_regions: frozenset[str] = frozenset()
    active_region: str | None = None
    entities: tuple[DeclaredEntity, ...] = ()
    members: tuple[MemberRef, ...] = ()
    matches: tuple[MatchRecord, ...] = ()
    snippet_length: int = TextLocator.DEFAULT_SNIPPET_LENGTH
    snippet_lead: int = TextLocator.SNIPPET_LEAD

    def __post_init__(self) -> None:
        object.__setattr__(self, "regions", _frozen_map(self.regions))

    @classmethod
    def from_document(
        cls,
        path: str,
        text: str,
        snippet_length: int | None = None,
        snippet_lead: int | None = None,
    ) -> "Context":
        return cls(
            path=path,
            text=text,
            snippet_length=TextLocator.DEFAULT_SNIPPET_LENGTH if snippet_length is None else snippet_length,
            snippet_lead=TextLocator.SNIPPET_LEAD if snippet_lead is None else snippet_lead,
        )

    # Copy-on-write

    def with_declaration_tree(self, tree: DeclarationTree | None) -> "Context":
        return replace(self, declaration_tree=tree)

    def with_region(self, region: Region, kind: str | None = None) -> "Context":
        """Cache a region under kind (defaults to its tag name)."""
        regions = dict(self.regions)
        regions[kind if kind is not None else region.tag] = region
        return replace(self, regions=regions)

    def with_missing_region(self, kind: str) -> "Context":
        return replace(self, missing_regions=self.missing_regions | {kind})

    def with_active_region(self, kind: str | None) -> "Context":
        """
        Point textual matching at a region.

        A region known to be missing may be activated; matching it yields nothing.
        """
        if kind is not None and not self.region_checked(kind):
            raise ValueError(f"Region '{kind}' has not been extracted")
        return replace(self, active_region=kind)

    def with_entities(self, entities: Iterable[DeclaredEntity]) -> "Context":
        return replace(self, entities=tuple(entities))

    def with_members(self, members: Iterable[MemberRef]) -> "Context":
        return replace(self, members=tuple(members))

    def with_matches(self, matches: Iterable[MatchRecord]) -> "Context":
        return replace(self, matches=tuple(matches))

    def add_matches(self, matches: Iterable[MatchRecord]) -> "Context":
        return replace(self, matches=self.matches + tuple(matches))

    # Queries

    @property
    def extension(self) -> str:
        name = self.path.rsplit("/", 1)[-1]
        if "." not in name:
            return ""
        return name.rsplit(".", 1)[-1].lower()

    @property
    def has_declarations(self) -> bool:
        return self.declaration_tree is not None

    @property
    def has_regions(self) -> bool:
        return bool(self.regions)

    def has_region(self, tag: str) -> bool:
        return tag in self.regions

    def region(self, tag: str) -> Region | None:
        return self.regions.get(tag)

    def region_checked(self, tag: str) -> bool:
        return tag in self.regions or tag in self.missing_regions

    def region_content(self, tag: str | None = None) -> str | None:
        """Content of the named region, or of the active region when tag is None."""
        key = tag if tag is not None else self.active_region
        if key is None:
            return None
        region = self.regions.get(key)
        return region.content if region is not None else None

    def path_contains(self, *fragments: str) -> bool:
        return any(fragment in self.path for fragment in fragments)

    def line_at(self, offset: int) -> int:
        return TextLocator.line_number(self.text, offset)

    def snippet_at(self, offset: int) -> str:
        return TextLocator.snippet(self.text, offset, self.snippet_length, self.snippet_lead)
