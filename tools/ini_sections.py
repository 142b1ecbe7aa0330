#!/usr/bin/env python3
"""
ini_sections.py - Section tokenizer for CiA 306 text files

Turns EDS, DCF and node-list text into an ordered, case-insensitive map of
section name -> (key -> value). The tokenizer knows nothing about objects
or modules; it only understands the line grammar:

    ; comment                 skipped (first non-blank character is ';')
    [SectionName]             opens (or re-opens) a section
    Key=Value                 split at the first '=', both sides trimmed

Re-opening a section merges keys into the existing one: last write wins
per key, the section keeps the position of its first appearance.

Usage:
    from ini_sections import parse_sections

    sections = parse_sections(text)
    sections['deviceinfo']['VENDORNAME']
"""

import logging
from collections.abc import MutableMapping
from typing import Dict, Iterator, Optional, Tuple, Union

from errors import EdsDecodeError


logger = logging.getLogger(__name__)

# Upper bound on accepted input (characters for text, bytes for raw input)
MAX_INPUT_SIZE = 10 * 1024 * 1024


class _CaseInsensitiveMap(MutableMapping):
    """Ordered mapping with case-insensitive string keys.

    The spelling of a key is the one it was first inserted with.
    """

    def __init__(self, data=None):
        self._store: Dict[str, Tuple[str, object]] = {}
        if data:
            self.update(data)

    def __getitem__(self, key):
        return self._store[key.lower()][1]

    def __setitem__(self, key, value):
        folded = key.lower()
        if folded in self._store:
            key = self._store[folded][0]
        self._store[folded] = (key, value)

    def __delitem__(self, key):
        del self._store[key.lower()]

    def __iter__(self) -> Iterator[str]:
        return (original for original, _ in self._store.values())

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, key) -> bool:
        return isinstance(key, str) and key.lower() in self._store

    def __repr__(self) -> str:
        return f"{type(self).__name__}({dict(self.items())!r})"


class Section(_CaseInsensitiveMap):
    """Key/value pairs of one section."""

    def get_value(self, key: str, default: str = '') -> str:
        return self.get(key, default)

    def to_dict(self) -> Dict[str, str]:
        return dict(self.items())


class SectionMap(_CaseInsensitiveMap):
    """All sections of a file, in first-seen order."""

    def __setitem__(self, key, value):
        if not isinstance(value, Section):
            value = Section(value)
        super().__setitem__(key, value)

    def get_value(self, section: str, key: str, default: str = '') -> str:
        """Value of ``key`` in ``section`` or ``default`` when either is absent."""
        if section not in self:
            return default
        return self[section].get(key, default)

    def has_section(self, section: str) -> bool:
        return section in self

    def to_dict(self) -> Dict[str, Dict[str, str]]:
        return {name: section.to_dict() for name, section in self.items()}


def _decode_bytes(data: bytes) -> str:
    try:
        return data.decode('utf-8-sig')
    except UnicodeDecodeError:
        # CiA 306 files are nominally ASCII; vendor tools emit Latin-1 too
        return data.decode('latin-1')


def parse_sections(content: Union[str, bytes],
                   max_size: Optional[int] = MAX_INPUT_SIZE) -> SectionMap:
    """
    Tokenize EDS/DCF/CPJ content into a SectionMap.

    Args:
        content: File content as text or raw bytes
        max_size: Ceiling on the input length, checked before tokenizing.
            None disables the check.

    Returns:
        SectionMap preserving section and key order

    Raises:
        EdsDecodeError: oversized input, or a malformed line (the error
            carries the 1-based line number)
    """
    if max_size is not None and len(content) > max_size:
        raise EdsDecodeError(
            f"Input of {len(content)} exceeds the maximum size of {max_size}")

    if isinstance(content, bytes):
        content = _decode_bytes(content)

    sections = SectionMap()
    current: Optional[Section] = None
    current_name: Optional[str] = None

    for line_number, raw_line in enumerate(content.splitlines(), start=1):
        line = raw_line.strip()

        if not line or line.startswith(';'):
            continue

        if line.startswith('[') and line.endswith(']'):
            current_name = line[1:-1].strip()
            if current_name not in sections:
                sections[current_name] = Section()
            current = sections[current_name]
            continue

        eq = line.find('=')
        if eq < 0:
            raise EdsDecodeError(
                f"Expected 'key=value' at line {line_number}: {line!r}",
                line_number=line_number, section_name=current_name)

        if current is None:
            raise EdsDecodeError(
                f"Key-value pair found outside of any section at line {line_number}",
                line_number=line_number)

        key = line[:eq].strip()
        if not key:
            raise EdsDecodeError(
                f"Empty key at line {line_number}",
                line_number=line_number, section_name=current_name)

        current[key] = line[eq + 1:].strip()

    logger.debug("Tokenized %d sections", len(sections))
    return sections
