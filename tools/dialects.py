#!/usr/bin/env python3
"""
dialects.py - Template (EDS) and configuration (DCF) dialect settings

Both dialects share one assembler and one encoder. Everything that differs
between them is data in a Dialect instance:

    TEMPLATE       - EDS: no commissioning, no configured values; sub-objects
                     are scanned for DEFSTRUCT, ARRAY and RECORD objects
    CONFIGURATION  - DCF: commissioning block, configured values, compact
                     <index>Value / <index>Denotation storage, connected
                     modules; sub-objects are scanned for ARRAY and RECORD
                     only (DEFSTRUCT excluded), plus any explicit SubNumber
"""

from dataclasses import dataclass
from typing import FrozenSet, Tuple

from value_converter import ObjectCode


_COMMON_SECTIONS = (
    'FileInfo', 'DeviceInfo', 'DummyUsage', 'MandatoryObjects',
    'OptionalObjects', 'ManufacturerObjects', 'Comments',
    'SupportedModules', 'Tools', 'DynamicChannels',
)


@dataclass(frozen=True)
class Dialect:
    name: str
    fixed_sections: Tuple[str, ...]
    sub_object_triggers: FrozenSet[int]
    configured_values: bool = False
    compact_storage: bool = False
    commissioning: bool = False
    connected_modules: bool = False
    last_eds: bool = False
    file_suffix: str = '.eds'

    def is_fixed_section(self, name: str) -> bool:
        folded = name.lower()
        return any(folded == known.lower() for known in self.fixed_sections)

    def triggers_sub_objects(self, object_type: int, sub_number) -> bool:
        """Whether sub-object sections are scanned for an object."""
        return bool(sub_number) or object_type in self.sub_object_triggers


TEMPLATE = Dialect(
    name='eds',
    fixed_sections=_COMMON_SECTIONS,
    sub_object_triggers=frozenset({ObjectCode.DEFSTRUCT, ObjectCode.ARRAY,
                                   ObjectCode.RECORD}),
)

CONFIGURATION = Dialect(
    name='dcf',
    fixed_sections=_COMMON_SECTIONS + ('DeviceCommissioning', 'ConnectedModules'),
    sub_object_triggers=frozenset({ObjectCode.ARRAY, ObjectCode.RECORD}),
    configured_values=True,
    compact_storage=True,
    commissioning=True,
    connected_modules=True,
    last_eds=True,
    file_suffix='.dcf',
)
