"""Core data types for the cross-reference index."""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List


@dataclass
class XRefFileIndex:
    """Raw renderer entries for one document, keyed by its book-relative path."""
    file: str
    entries: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class XRefIndexEntry:
    """A single raw entry together with the document it came from."""
    file: str
    entry: str


@dataclass(frozen=True)
class XRef:
    """Structured cross-reference record returned to clients."""
    file: str
    type: str
    id: str
    title: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SourceDocument:
    """An open editor document."""
    id: str
    path: str
    contents: str = ""
    dirty: bool = False
