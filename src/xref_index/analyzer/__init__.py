"""Cross-Reference Extraction

Renderer adapter producing raw index entries and the parser that turns them
into structured cross-reference records.
"""

from .renderer import PandocRenderer, split_output
from .xrefs import (
    TEXT_REF_PATTERN,
    entries_for_file,
    index_entries_to_xrefs,
    parse_entry,
    partition_entries,
    split_entry_id,
)

__all__ = [
    "PandocRenderer",
    "split_output",
    "TEXT_REF_PATTERN",
    "entries_for_file",
    "index_entries_to_xrefs",
    "parse_entry",
    "partition_entries",
    "split_entry_id",
]
