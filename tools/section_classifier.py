#!/usr/bin/env python3
"""
section_classifier.py - Section name classification for EDS/DCF files

Maps a section name to a tagged SectionClass. Matchers run in a fixed
order and the first match wins:

    1. fixed top-level names (per dialect), then Tool<n>
    2. <hex>                         object
    3. <hex>sub<hex>                 sub-object
    4. <hex>Value / <hex>Denotation  compact storage (configuration dialect)
    5. M<n><suffix>                  module extension
    6. <hex>ObjectLinks              object links (never known)
    7. anything else                 unknown

Classification is purely name based. Whether the assembler actually reads a
section into the tree is decided later; see od_assembler.py.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from dialects import Dialect


class SectionKind(Enum):
    FIXED = 'fixed'
    TOOL = 'tool'
    OBJECT = 'object'
    SUB_OBJECT = 'sub_object'
    COMPACT_VALUE = 'compact_value'
    COMPACT_DENOTATION = 'compact_denotation'
    MODULE_INFO = 'module_info'
    MODULE_FIXED_OBJECTS = 'module_fixed_objects'
    MODULE_FIXED_DEFINITION = 'module_fixed_definition'
    MODULE_FIXED_SUB_DEFINITION = 'module_fixed_sub_definition'
    MODULE_SUB_EXTENDS = 'module_sub_extends'
    MODULE_SUB_EXT_DEFINITION = 'module_sub_ext_definition'
    MODULE_COMMENTS = 'module_comments'
    OBJECT_LINKS = 'object_links'
    UNKNOWN = 'unknown'


@dataclass(frozen=True)
class SectionClass:
    """Result of classifying one section name."""
    kind: SectionKind
    name: str
    index: Optional[int] = None
    sub_index: Optional[int] = None
    number: Optional[int] = None  # module or tool number

    @property
    def known(self) -> bool:
        return self.kind not in (SectionKind.UNKNOWN, SectionKind.OBJECT_LINKS)


_HEX16_RE = re.compile(r'^[0-9A-Fa-f]{1,4}$')
_HEX8_RE = re.compile(r'^[0-9A-Fa-f]{1,2}$')
_TOOL_RE = re.compile(r'^tool(\d+)$', re.IGNORECASE)
_MODULE_RE = re.compile(r'^m(\d+)(.*)$', re.IGNORECASE | re.DOTALL)


def parse_hex_index(text: str) -> Optional[int]:
    """Parse a 1-4 digit hexadecimal index, or None."""
    if _HEX16_RE.match(text):
        return int(text, 16)
    return None


def parse_hex_sub_index(text: str) -> Optional[int]:
    if _HEX8_RE.match(text):
        return int(text, 16)
    return None


def _split_sub(text: str):
    """Split '<hex>sub<hex>' into (index, sub_index); index None if no match."""
    pos = text.lower().find('sub')
    if pos < 1:
        return None, None
    index = parse_hex_index(text[:pos])
    if index is None:
        return None, None
    return index, parse_hex_sub_index(text[pos + 3:])


def _hex_with_suffix(text: str, suffix: str) -> Optional[int]:
    if not text.lower().endswith(suffix.lower()):
        return None
    return parse_hex_index(text[:len(text) - len(suffix)])


# =============================================================================
# Matchers
# =============================================================================

def _match_fixed(name: str, dialect: Dialect) -> Optional[SectionClass]:
    if dialect.is_fixed_section(name):
        return SectionClass(SectionKind.FIXED, name)
    m = _TOOL_RE.match(name)
    if m:
        return SectionClass(SectionKind.TOOL, name, number=int(m.group(1)))
    return None


def _match_object(name: str, dialect: Dialect) -> Optional[SectionClass]:
    index = parse_hex_index(name)
    if index is not None:
        return SectionClass(SectionKind.OBJECT, name, index=index)
    return None


def _match_sub_object(name: str, dialect: Dialect) -> Optional[SectionClass]:
    index, sub_index = _split_sub(name)
    if index is not None:
        return SectionClass(SectionKind.SUB_OBJECT, name, index=index, sub_index=sub_index)
    return None


def _match_compact(name: str, dialect: Dialect) -> Optional[SectionClass]:
    if not dialect.compact_storage:
        return None
    index = _hex_with_suffix(name, 'Value')
    if index is not None:
        return SectionClass(SectionKind.COMPACT_VALUE, name, index=index)
    index = _hex_with_suffix(name, 'Denotation')
    if index is not None:
        return SectionClass(SectionKind.COMPACT_DENOTATION, name, index=index)
    return None


def _match_module(name: str, dialect: Dialect) -> Optional[SectionClass]:
    m = _MODULE_RE.match(name)
    if not m:
        return None
    number = int(m.group(1))
    suffix = m.group(2)
    folded = suffix.lower()

    if folded == 'moduleinfo':
        return SectionClass(SectionKind.MODULE_INFO, name, number=number)
    if folded == 'fixedobjects':
        return SectionClass(SectionKind.MODULE_FIXED_OBJECTS, name, number=number)
    if folded.startswith('subextend'):
        return SectionClass(SectionKind.MODULE_SUB_EXTENDS, name, number=number)
    if folded.startswith('subext'):
        return SectionClass(SectionKind.MODULE_SUB_EXT_DEFINITION, name, number=number,
                            index=parse_hex_index(suffix[6:]))
    if folded == 'comments':
        return SectionClass(SectionKind.MODULE_COMMENTS, name, number=number)
    if folded.startswith('fixed'):
        rest = suffix[5:]
        index, sub_index = _split_sub(rest)
        if index is not None:
            return SectionClass(SectionKind.MODULE_FIXED_SUB_DEFINITION, name,
                                number=number, index=index, sub_index=sub_index)
        index = parse_hex_index(rest)
        if index is not None:
            return SectionClass(SectionKind.MODULE_FIXED_DEFINITION, name,
                                number=number, index=index)
    return None


def _match_object_links(name: str, dialect: Dialect) -> Optional[SectionClass]:
    index = _hex_with_suffix(name, 'ObjectLinks')
    if index is not None:
        return SectionClass(SectionKind.OBJECT_LINKS, name, index=index)
    return None


MATCHERS: List[Callable[[str, Dialect], Optional[SectionClass]]] = [
    _match_fixed,
    _match_object,
    _match_sub_object,
    _match_compact,
    _match_module,
    _match_object_links,
]


def classify_section(name: str, dialect: Dialect) -> SectionClass:
    """Classify a section name; total, never raises."""
    for matcher in MATCHERS:
        result = matcher(name, dialect)
        if result is not None:
            return result
    return SectionClass(SectionKind.UNKNOWN, name)
