#!/usr/bin/env python3
"""
od_assembler.py - Build typed EDS/DCF documents from tokenized sections

The assembler walks a SectionMap, classifies every section name
(section_classifier.py) and reconstructs the document tree:

    FileInfo, DeviceInfo (mandatory), DeviceCommissioning (DCF)
    Mandatory/Optional/ManufacturerObjects -> objects -> sub-objects
    <index>Value / <index>Denotation       -> compact storage (DCF)
    SupportedModules -> M<n>ModuleInfo, FixedObjects, Fixed<index>,
                        SubExtends, SubExt<index>, Comments
    ConnectedModules (DCF), Tools/Tool<n>, DynamicChannels, DummyUsage

A section is *claimed* only when its content is read into the tree, so the
encoder can reproduce it from the tree alone. Everything else (unknown
vendor sections, objects not listed in any index list, sub-objects outside
the discovery range, <index>ObjectLinks) lands in additional_sections
verbatim. ObjectLinks sections are additionally parsed into the owning
object's link list.

Usage:
    from ini_sections import parse_sections
    from od_assembler import ObjectDictionaryAssembler
    from dialects import TEMPLATE

    eds = ObjectDictionaryAssembler(TEMPLATE).assemble(parse_sections(text))
"""

import logging
from typing import Callable, Dict, List, Optional, Set, Tuple

from dialects import Dialect
from errors import EdsDecodeError
from ini_sections import SectionMap
from object_dictionary import (
    BaudRates, CanOpenObject, CanOpenSubObject, Comments, DeviceCommissioning,
    DeviceConfigurationFile, DeviceInfo, DynamicChannels, DynamicChannelSegment,
    ElectronicDataSheet, FileInfo, ModuleInfo, ModuleSubExtension,
    ObjectDictionary, ToolInfo, BAUD_RATES,
)
from section_classifier import SectionKind, classify_section, parse_hex_index
from value_converter import ObjectCode, parse_access_type, parse_boolean, parse_integer


logger = logging.getLogger(__name__)

# Compact storage rows address sub-indices 1..254
MAX_COMPACT_SUB_INDEX = 0xFE

_LookupKey = Tuple[SectionKind, Optional[int], Optional[int], Optional[int]]


class _Assembly:
    """State of a single assemble() call."""

    def __init__(self, sections: SectionMap, dialect: Dialect):
        self.sections = sections
        self.dialect = dialect
        self.claimed: Set[str] = set()
        self.lookup: Dict[_LookupKey, str] = {}

        for name in sections:
            cls = classify_section(name, dialect)
            if cls.kind in (SectionKind.FIXED, SectionKind.UNKNOWN):
                continue
            key = (cls.kind, cls.index, cls.sub_index, cls.number)
            self.lookup.setdefault(key, name)

    # -------------------------------------------------------------------------
    # Section access
    # -------------------------------------------------------------------------

    def find(self, kind: SectionKind, index: Optional[int] = None,
             sub_index: Optional[int] = None, number: Optional[int] = None) -> Optional[str]:
        return self.lookup.get((kind, index, sub_index, number))

    def claim(self, name: str):
        self.claimed.add(name.lower())

    def text(self, section: str, key: str, default: str = '') -> str:
        return self.sections.get_value(section, key, default)

    def optional_text(self, section: str, key: str) -> Optional[str]:
        return self.text(section, key) or None

    def integer(self, section: str, key: str, bits: int, default: str = '0') -> int:
        raw = self.text(section, key, default)
        try:
            return parse_integer(raw, bits)
        except EdsDecodeError as exc:
            raise EdsDecodeError(f"{exc} (key {key})", section_name=section) from exc

    def optional_integer(self, section: str, key: str, bits: int) -> Optional[int]:
        """Integer value, or None when the key is absent, empty or zero."""
        if not self.text(section, key):
            return None
        return self.integer(section, key, bits) or None

    def boolean(self, section: str, key: str) -> bool:
        return parse_boolean(self.text(section, key))

    def object_type(self, section: str) -> int:
        value = self.integer(section, 'ObjectType', 8, '0x7')
        try:
            return ObjectCode(value)
        except ValueError:
            return value

    def numbered_list(self, section: str, count_key: str) -> List[int]:
        """Read '<count_key>=n' followed by keys 1..n as 16-bit integers."""
        count = self.integer(section, count_key, 16)
        values = []
        for i in range(1, count + 1):
            if self.text(section, str(i)):
                values.append(self.integer(section, str(i), 16))
        if len(values) < count:
            logger.warning("[%s] declares %d entries but only %d are present",
                           section, count, len(values))
        return values

    # -------------------------------------------------------------------------
    # Metadata
    # -------------------------------------------------------------------------

    def read_file_info(self) -> FileInfo:
        info = FileInfo()
        if not self.sections.has_section('FileInfo'):
            return info

        s = 'FileInfo'
        info.file_name = self.text(s, 'FileName')
        info.file_version = self.integer(s, 'FileVersion', 8, '1')
        info.file_revision = self.integer(s, 'FileRevision', 8, '0')
        info.eds_version = self.text(s, 'EDSVersion', '4.0')
        info.description = self.text(s, 'Description')
        info.creation_time = self.text(s, 'CreationTime')
        info.creation_date = self.text(s, 'CreationDate')
        info.created_by = self.text(s, 'CreatedBy')
        info.modification_time = self.text(s, 'ModificationTime')
        info.modification_date = self.text(s, 'ModificationDate')
        info.modified_by = self.text(s, 'ModifiedBy')
        if self.dialect.last_eds:
            info.last_eds = self.optional_text(s, 'LastEDS')
        self.claim(s)
        return info

    def read_device_info(self) -> DeviceInfo:
        s = 'DeviceInfo'
        if not self.sections.has_section(s):
            raise EdsDecodeError("Required section [DeviceInfo] not found", section_name=s)

        info = DeviceInfo()
        info.vendor_name = self.text(s, 'VendorName')
        info.vendor_number = self.integer(s, 'VendorNumber', 32)
        info.product_name = self.text(s, 'ProductName')
        info.product_number = self.integer(s, 'ProductNumber', 32)
        info.revision_number = self.integer(s, 'RevisionNumber', 32)
        info.order_code = self.text(s, 'OrderCode')

        rates = BaudRates()
        for kbit in BAUD_RATES:
            setattr(rates, f'baud_rate_{kbit}', self.boolean(s, f'BaudRate_{kbit}'))
        info.supported_baud_rates = rates

        info.simple_boot_up_master = self.boolean(s, 'SimpleBootUpMaster')
        info.simple_boot_up_slave = self.boolean(s, 'SimpleBootUpSlave')
        info.granularity = self.integer(s, 'Granularity', 8, '8')
        info.dynamic_channels_supported = self.integer(s, 'DynamicChannelsSupported', 8)
        info.group_messaging = self.boolean(s, 'GroupMessaging')
        info.nr_of_rx_pdo = self.integer(s, 'NrOfRXPDO', 16)
        info.nr_of_tx_pdo = self.integer(s, 'NrOfTXPDO', 16)
        info.lss_supported = self.boolean(s, 'LSS_Supported')
        info.compact_pdo = self.integer(s, 'CompactPDO', 8)
        info.canopen_safety_supported = self.boolean(s, 'CANopenSafetySupported')
        self.claim(s)
        return info

    def read_commissioning(self) -> DeviceCommissioning:
        dc = DeviceCommissioning()
        s = 'DeviceCommissioning'
        if not self.sections.has_section(s):
            return dc

        dc.node_id = self.integer(s, 'NodeID', 8, '1')
        dc.node_name = self.text(s, 'NodeName')
        dc.baudrate = self.integer(s, 'Baudrate', 16, '250')
        dc.net_number = self.integer(s, 'NetNumber', 32)
        dc.network_name = self.text(s, 'NetworkName')
        dc.canopen_manager = self.boolean(s, 'CANopenManager')
        if self.text(s, 'LSS_SerialNumber'):
            dc.lss_serial_number = self.integer(s, 'LSS_SerialNumber', 32)
        dc.node_refd = self.optional_text(s, 'NodeRefd')
        dc.net_refd = self.optional_text(s, 'NetRefd')
        self.claim(s)
        return dc

    def read_comments(self, section: str) -> Comments:
        comments = Comments(lines=self.integer(section, 'Lines', 16))
        for i in range(1, comments.lines + 1):
            line = self.text(section, f'Line{i}')
            if line:
                comments.comment_lines[i] = line
        self.claim(section)
        return comments

    # -------------------------------------------------------------------------
    # Objects
    # -------------------------------------------------------------------------

    def read_object(self, section: str, index: int,
                    find_sub: Callable[[int], Optional[str]],
                    top_level: bool = True) -> CanOpenObject:
        obj = CanOpenObject(index=index)
        obj.parameter_name = self.text(section, 'ParameterName')
        obj.object_type = self.object_type(section)
        if self.text(section, 'DataType'):
            obj.data_type = self.integer(section, 'DataType', 16)
        if self.text(section, 'AccessType'):
            obj.access_type = parse_access_type(self.text(section, 'AccessType'))
        obj.default_value = self.optional_text(section, 'DefaultValue')
        obj.low_limit = self.optional_text(section, 'LowLimit')
        obj.high_limit = self.optional_text(section, 'HighLimit')
        obj.pdo_mapping = self.boolean(section, 'PDOMapping')
        obj.srdo_mapping = self.boolean(section, 'SRDOMapping')
        obj.inverted_srad = self.optional_text(section, 'InvertedSRAD')
        obj.obj_flags = self.integer(section, 'ObjFlags', 32)
        obj.sub_number = self.optional_integer(section, 'SubNumber', 8)
        obj.compact_sub_obj = self.optional_integer(section, 'CompactSubObj', 8)

        if self.dialect.configured_values:
            obj.parameter_value = self.optional_text(section, 'ParameterValue')
            obj.denotation = self.optional_text(section, 'Denotation')
            obj.upload_file = self.optional_text(section, 'UploadFile')
            obj.download_file = self.optional_text(section, 'DownloadFile')
            obj.param_refd = self.optional_text(section, 'ParamRefd')
        self.claim(section)

        if self.dialect.triggers_sub_objects(obj.object_type, obj.sub_number):
            self.read_sub_objects(obj, find_sub)
            if top_level and self.dialect.compact_storage:
                self.apply_compact_storage(obj)

        if top_level:
            links = self.find(SectionKind.OBJECT_LINKS, index=index)
            if links is not None:
                # Parsed here, but left unclaimed: the section also stays in the bag
                obj.object_links = self.numbered_list(links, 'ObjectLinks')

        return obj

    def read_sub_objects(self, obj: CanOpenObject, find_sub: Callable[[int], Optional[str]]):
        max_sub_index = max(obj.sub_number or 0, obj.compact_sub_obj or 0)
        for sub_index in range(max_sub_index + 1):
            section = find_sub(sub_index)
            if section is not None:
                obj.sub_objects[sub_index] = self.read_sub_object(section, sub_index)

    def read_sub_object(self, section: str, sub_index: int) -> CanOpenSubObject:
        sub = CanOpenSubObject(sub_index=sub_index)
        sub.parameter_name = self.text(section, 'ParameterName')
        sub.object_type = self.object_type(section)
        sub.data_type = self.integer(section, 'DataType', 16)
        sub.access_type = parse_access_type(self.text(section, 'AccessType'))
        sub.default_value = self.optional_text(section, 'DefaultValue')
        sub.low_limit = self.optional_text(section, 'LowLimit')
        sub.high_limit = self.optional_text(section, 'HighLimit')
        sub.pdo_mapping = self.boolean(section, 'PDOMapping')
        sub.srdo_mapping = self.boolean(section, 'SRDOMapping')
        sub.inverted_srad = self.optional_text(section, 'InvertedSRAD')
        if self.dialect.configured_values:
            sub.parameter_value = self.optional_text(section, 'ParameterValue')
            sub.denotation = self.optional_text(section, 'Denotation')
            sub.param_refd = self.optional_text(section, 'ParamRefd')
        self.claim(section)
        return sub

    def apply_compact_storage(self, obj: CanOpenObject):
        """Overlay <index>Value / <index>Denotation rows onto discovered sub-objects."""
        for kind, attr in ((SectionKind.COMPACT_VALUE, 'parameter_value'),
                           (SectionKind.COMPACT_DENOTATION, 'denotation')):
            section = self.find(kind, index=obj.index)
            if section is None:
                continue
            count = self.integer(section, 'NrOfEntries', 16)
            for i in range(1, min(count, MAX_COMPACT_SUB_INDEX) + 1):
                value = self.text(section, str(i))
                if not value:
                    continue
                sub = obj.sub_objects.get(i)
                if sub is None:
                    logger.debug("[%s] row %d has no sub-object, dropped", section, i)
                    continue
                setattr(sub, attr, value)
            self.claim(section)

    def read_object_dictionary(self) -> ObjectDictionary:
        od = ObjectDictionary()
        for attr, name in (('mandatory_objects', 'MandatoryObjects'),
                           ('optional_objects', 'OptionalObjects'),
                           ('manufacturer_objects', 'ManufacturerObjects')):
            if not self.sections.has_section(name):
                continue
            indices = self.numbered_list(name, 'SupportedObjects')
            setattr(od, attr, indices)
            if indices:
                self.claim(name)

        for index in od.all_listed_indices():
            section = self.find(SectionKind.OBJECT, index=index)
            if section is None:
                continue
            od.objects[index] = self.read_object(
                section, index,
                lambda sub_index, index=index: self.find(
                    SectionKind.SUB_OBJECT, index=index, sub_index=sub_index))

        if self.sections.has_section('DummyUsage'):
            dummy = self.sections['DummyUsage']
            for key in dummy:
                if key.lower().startswith('dummy') and len(key) > 5:
                    index = parse_hex_index(key[5:])
                    if index is not None:
                        od.dummy_usage[index] = parse_boolean(dummy[key])
            if od.dummy_usage:
                self.claim('DummyUsage')

        return od

    # -------------------------------------------------------------------------
    # Modules, tools, dynamic channels
    # -------------------------------------------------------------------------

    def read_module(self, number: int, section: str) -> ModuleInfo:
        module = ModuleInfo(module_number=number)
        module.product_name = self.text(section, 'ProductName')
        module.product_version = self.integer(section, 'ProductVersion', 8, '1')
        module.product_revision = self.integer(section, 'ProductRevision', 8, '0')
        module.order_code = self.text(section, 'OrderCode')
        self.claim(section)

        fixed = self.find(SectionKind.MODULE_FIXED_OBJECTS, number=number)
        if fixed is not None:
            module.fixed_objects = self.numbered_list(fixed, 'NrOfEntries')
            if module.fixed_objects:
                self.claim(fixed)
        for index in dict.fromkeys(module.fixed_objects):
            definition = self.find(SectionKind.MODULE_FIXED_DEFINITION,
                                   index=index, number=number)
            if definition is None:
                continue
            module.fixed_object_definitions[index] = self.read_object(
                definition, index,
                lambda sub_index, index=index: self.find(
                    SectionKind.MODULE_FIXED_SUB_DEFINITION,
                    index=index, sub_index=sub_index, number=number),
                top_level=False)

        extends = self.find(SectionKind.MODULE_SUB_EXTENDS, number=number)
        if extends is not None:
            module.sub_extends = self.numbered_list(extends, 'NrOfEntries')
            if module.sub_extends:
                self.claim(extends)
        for index in dict.fromkeys(module.sub_extends):
            definition = self.find(SectionKind.MODULE_SUB_EXT_DEFINITION,
                                   index=index, number=number)
            if definition is None:
                continue
            module.sub_extension_definitions[index] = ModuleSubExtension(
                index=index,
                parameter_name=self.text(definition, 'ParameterName'),
                data_type=self.integer(definition, 'DataType', 16),
                access_type=parse_access_type(self.text(definition, 'AccessType')),
                default_value=self.optional_text(definition, 'DefaultValue'),
                pdo_mapping=self.boolean(definition, 'PDOMapping'),
                count=self.text(definition, 'Count'),
                obj_extend=(self.integer(definition, 'ObjExtend', 8)
                            if self.text(definition, 'ObjExtend') else None),
            )
            self.claim(definition)

        comments = self.find(SectionKind.MODULE_COMMENTS, number=number)
        if comments is not None:
            module.comments = self.read_comments(comments)

        return module

    def read_supported_modules(self) -> List[ModuleInfo]:
        if not self.sections.has_section('SupportedModules'):
            return []
        modules = []
        count = self.integer('SupportedModules', 'NrOfEntries', 16)
        for number in range(1, count + 1):
            section = self.find(SectionKind.MODULE_INFO, number=number)
            if section is not None:
                modules.append(self.read_module(number, section))
        if modules:
            self.claim('SupportedModules')
        return modules

    def read_connected_modules(self) -> List[int]:
        if not self.sections.has_section('ConnectedModules'):
            return []
        modules = self.numbered_list('ConnectedModules', 'NrOfEntries')
        if modules:
            self.claim('ConnectedModules')
        return modules

    def read_tools(self) -> List[ToolInfo]:
        if not self.sections.has_section('Tools'):
            return []
        tools = []
        for number in range(1, self.integer('Tools', 'Items', 8) + 1):
            section = self.find(SectionKind.TOOL, number=number)
            if section is None:
                continue
            tools.append(ToolInfo(name=self.text(section, 'Name'),
                                  command=self.text(section, 'Command')))
            self.claim(section)
        if tools:
            self.claim('Tools')
        return tools

    def read_dynamic_channels(self) -> Optional[DynamicChannels]:
        s = 'DynamicChannels'
        if not self.sections.has_section(s):
            return None
        count = self.integer(s, 'NrOfSeg', 8)
        if count == 0:
            return None

        channels = DynamicChannels()
        for i in range(1, count + 1):
            channels.segments.append(DynamicChannelSegment(
                type=self.integer(s, f'Type{i}', 16),
                dir=parse_access_type(self.text(s, f'Dir{i}')),
                range=self.text(s, f'Range{i}'),
                pp_offset=self.integer(s, f'PPOffset{i}', 32),
            ))
        self.claim(s)
        return channels

    def unclaimed_sections(self) -> Dict[str, Dict[str, str]]:
        bag = {}
        for name, section in self.sections.items():
            if name.lower() not in self.claimed:
                logger.debug("Section [%s] kept as additional section", name)
                bag[name] = section.to_dict()
        return bag


class ObjectDictionaryAssembler:
    """Assembles EDS or DCF documents, depending on the dialect."""

    def __init__(self, dialect: Dialect):
        self.dialect = dialect

    def assemble(self, sections: SectionMap) -> ElectronicDataSheet:
        """
        Build a document from tokenized sections.

        Returns:
            DeviceConfigurationFile for the configuration dialect,
            ElectronicDataSheet otherwise

        Raises:
            EdsDecodeError: [DeviceInfo] is missing or a literal is malformed
        """
        return self._assemble(sections)[0]

    def partition(self, sections: SectionMap) -> Tuple[List[str], List[str]]:
        """Names of the sections read into the tree, and of those left in the bag."""
        doc, state = self._assemble(sections)
        claimed = [name for name in sections if name.lower() in state.claimed]
        return claimed, list(doc.additional_sections)

    def _assemble(self, sections: SectionMap) -> Tuple[ElectronicDataSheet, _Assembly]:
        state = _Assembly(sections, self.dialect)

        if self.dialect.commissioning:
            doc = DeviceConfigurationFile()
        else:
            doc = ElectronicDataSheet()

        doc.file_info = state.read_file_info()
        doc.device_info = state.read_device_info()
        if self.dialect.commissioning:
            doc.device_commissioning = state.read_commissioning()
        doc.object_dictionary = state.read_object_dictionary()
        if sections.has_section('Comments'):
            doc.comments = state.read_comments('Comments')
        doc.supported_modules = state.read_supported_modules()
        if self.dialect.connected_modules:
            doc.connected_modules = state.read_connected_modules()
        doc.tools = state.read_tools()
        doc.dynamic_channels = state.read_dynamic_channels()
        doc.additional_sections = state.unclaimed_sections()

        logger.debug("Assembled %s: %d objects, %d additional sections",
                     self.dialect.name, len(doc.object_dictionary.objects),
                     len(doc.additional_sections))
        return doc, state
