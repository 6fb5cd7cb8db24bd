"""Cross-Reference Entry Parsing

Turns raw renderer entries into structured cross-reference records. Pure text
processing, no I/O.

Renderer output has two kinds of lines:

* normal entries, ``<type>:<id> <title>`` (e.g. ``fig:plot A plot``)
* text references, ``(<key>) <title>`` (e.g. ``(ref:plot-cap) A plot``),
  whose title replaces any normal entry title equal to ``(<key>)``.
"""

import re
from typing import Dict, Iterable, List, Sequence, Tuple

from xref_index.models import XRef, XRefFileIndex, XRefIndexEntry

TEXT_REF_PATTERN = re.compile(r"^(\(.*\))\s+(.*)$")


def entries_for_file(file_index: XRefFileIndex) -> List[XRefIndexEntry]:
    """Pair every raw entry of a file index with its file."""
    return [XRefIndexEntry(file_index.file, entry) for entry in file_index.entries]


def split_entry_id(id_token: str) -> Tuple[str, str]:
    """Split ``type:id`` on the first colon; no colon means an empty type."""
    type_, sep, id_ = id_token.partition(":")
    if not sep:
        return "", id_token
    return type_, id_


def partition_entries(
    entries: Iterable[XRefIndexEntry],
) -> Tuple[Dict[str, str], List[XRefIndexEntry]]:
    """Separate text references (as a key -> title map) from normal entries."""
    text_refs: Dict[str, str] = {}
    normal_entries: List[XRefIndexEntry] = []
    for index_entry in entries:
        match = TEXT_REF_PATTERN.search(index_entry.entry)
        if match:
            text_refs[match.group(1)] = match.group(2)
        else:
            normal_entries.append(index_entry)
    return text_refs, normal_entries


def parse_entry(index_entry: XRefIndexEntry, text_refs: Dict[str, str]) -> XRef:
    """Build one record from a normal entry, substituting a text reference title."""
    entry = index_entry.entry
    id_token, sep, title = entry.partition(" ")
    if not sep:
        title = ""

    # only an exact match on the full key, parentheses included, substitutes
    text_ref_title = text_refs.get(title, "")
    if text_ref_title:
        title = text_ref_title

    type_, id_ = split_entry_id(id_token)
    return XRef(file=index_entry.file, type=type_, id=id_, title=title)


def index_entries_to_xrefs(entries: Sequence[XRefIndexEntry]) -> List[XRef]:
    """Transform raw entries into records, preserving input order."""
    text_refs, normal_entries = partition_entries(entries)
    return [
        parse_entry(index_entry, text_refs)
        for index_entry in normal_entries
        if index_entry.entry.strip()
    ]
