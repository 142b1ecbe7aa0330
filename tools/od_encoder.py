#!/usr/bin/env python3
"""
od_encoder.py - Render EDS/DCF documents back to CiA 306 text

Output layout (every section is followed by one blank line):

    [FileInfo]
    [DeviceInfo]
    [DeviceCommissioning]                  configuration dialect
    [DummyUsage]                           if any dummy entries
    [MandatoryObjects] [OptionalObjects] [ManufacturerObjects]
    [<index>] [<index>sub<n>]... [<index>ObjectLinks]   ascending index
    [SupportedModules] [M<n>ModuleInfo] [M<n>FixedObjects] [M<n>Fixed<index>]...
    [ConnectedModules]                     configuration dialect
    [Tools] [Tool<n>]
    [DynamicChannels]
    [Comments]
    additional sections, in their original order

Integers are written as 0x-prefixed upper-case hex, counts in decimal.
Additional sections whose name was already emitted, and ObjectLinks
sections of objects whose links were emitted, are skipped so that the
output re-parses to the same tree.

Usage:
    from od_encoder import ObjectDictionaryEncoder
    from dialects import CONFIGURATION

    text = ObjectDictionaryEncoder(CONFIGURATION).encode(dcf)
"""

import logging
from typing import Dict, List, Optional, Set, Tuple

from dialects import Dialect
from errors import DcfWriteError, EdsDecodeError
from ini_sections import Section
from object_dictionary import (
    BAUD_RATES, CanOpenObject, CanOpenSubObject, Comments, DeviceCommissioning,
    ElectronicDataSheet, ModuleInfo,
)
from section_classifier import SectionKind, classify_section
from value_converter import (
    access_type_to_string, format_boolean, format_integer, parse_integer,
)


logger = logging.getLogger(__name__)

_Pairs = List[Tuple[str, str]]


def _numbered(count_key: str, values: List[int], use_hex: bool = True) -> _Pairs:
    pairs = [(count_key, str(len(values)))]
    pairs += [(str(i), format_integer(v, use_hex)) for i, v in enumerate(values, start=1)]
    return pairs


def _comment_pairs(comments: Comments) -> _Pairs:
    pairs = [('Lines', str(comments.lines))]
    pairs += [(f'Line{i}', comments.comment_lines[i]) for i in sorted(comments.comment_lines)]
    return pairs


def _decode_links(entries: Dict[str, str]) -> Optional[List[int]]:
    """Link list stored in a raw ObjectLinks section, or None if unreadable."""
    section = Section(entries)
    try:
        count = parse_integer(section.get_value('ObjectLinks'), 16)
        return [parse_integer(section.get_value(str(i)), 16)
                for i in range(1, count + 1) if section.get_value(str(i))]
    except EdsDecodeError:
        return None


class _Encoding:
    """State of a single encode() call."""

    def __init__(self, dialect: Dialect, doc: ElectronicDataSheet):
        self.dialect = dialect
        self.doc = doc
        self._lines: List[str] = []
        self._emitted: Set[str] = set()
        self._linked: Set[int] = set()
        self._links_by_index = self._bag_object_links(doc)

    def render(self) -> str:
        doc = self.doc
        self._emit('FileInfo', lambda: self._file_info_pairs(doc))
        self._emit('DeviceInfo', lambda: self._device_info_pairs(doc))
        if self.dialect.commissioning:
            self._emit('DeviceCommissioning', lambda: self._commissioning_pairs(doc))

        od = doc.object_dictionary
        if od.dummy_usage:
            self._emit('DummyUsage', lambda: [
                (f'Dummy{index:04X}', format_boolean(used))
                for index, used in sorted(od.dummy_usage.items())])

        for name, indices in (('MandatoryObjects', od.mandatory_objects),
                              ('OptionalObjects', od.optional_objects),
                              ('ManufacturerObjects', od.manufacturer_objects)):
            if indices:
                self._emit(name, lambda indices=indices: _numbered('SupportedObjects', indices))

        for index in sorted(od.objects):
            self._write_object(od.objects[index])

        if doc.supported_modules:
            self._write_modules(doc.supported_modules)

        connected = getattr(doc, 'connected_modules', None)
        if self.dialect.connected_modules and connected:
            self._emit('ConnectedModules',
                       lambda: _numbered('NrOfEntries', connected, use_hex=False))

        if doc.tools:
            self._emit('Tools', lambda: [('Items', str(len(doc.tools)))])
            for number, tool in enumerate(doc.tools, start=1):
                self._emit(f'Tool{number}',
                           lambda tool=tool: [('Name', tool.name), ('Command', tool.command)])

        if doc.dynamic_channels is not None:
            self._emit('DynamicChannels', lambda: self._dynamic_channel_pairs(doc))

        if doc.comments is not None:
            self._emit('Comments', lambda: _comment_pairs(doc.comments))

        self._write_additional_sections(doc)

        text = '\n'.join(self._lines) + '\n'
        logger.debug("Encoded %s with %d sections", self.dialect.name, len(self._emitted))
        return text

    # -------------------------------------------------------------------------
    # Section output
    # -------------------------------------------------------------------------

    def _emit(self, name: str, render):
        try:
            pairs = render()
            lines = [f"[{name}]"] + [f"{key}={value}" for key, value in pairs]
        except DcfWriteError:
            raise
        except Exception as exc:
            raise DcfWriteError(f"Failed to encode section [{name}]: {exc}",
                                section_name=name) from exc
        self._lines.extend(lines)
        self._lines.append('')
        self._emitted.add(name.lower())

    def _file_info_pairs(self, doc) -> _Pairs:
        info = doc.file_info
        pairs = [
            ('FileName', info.file_name),
            ('FileVersion', str(info.file_version)),
            ('FileRevision', str(info.file_revision)),
            ('EDSVersion', info.eds_version),
            ('Description', info.description),
            ('CreationTime', info.creation_time),
            ('CreationDate', info.creation_date),
            ('CreatedBy', info.created_by),
            ('ModificationTime', info.modification_time),
            ('ModificationDate', info.modification_date),
            ('ModifiedBy', info.modified_by),
        ]
        if self.dialect.last_eds and info.last_eds:
            pairs.append(('LastEDS', info.last_eds))
        return pairs

    def _device_info_pairs(self, doc) -> _Pairs:
        info = doc.device_info
        pairs = [
            ('VendorName', info.vendor_name),
            ('VendorNumber', format_integer(info.vendor_number)),
            ('ProductName', info.product_name),
            ('ProductNumber', format_integer(info.product_number)),
            ('RevisionNumber', format_integer(info.revision_number)),
            ('OrderCode', info.order_code),
        ]
        pairs += [(f'BaudRate_{kbit}', format_boolean(info.supported_baud_rates.supports(kbit)))
                  for kbit in BAUD_RATES]
        pairs += [
            ('SimpleBootUpMaster', format_boolean(info.simple_boot_up_master)),
            ('SimpleBootUpSlave', format_boolean(info.simple_boot_up_slave)),
            ('Granularity', str(info.granularity)),
            ('DynamicChannelsSupported', str(info.dynamic_channels_supported)),
            ('GroupMessaging', format_boolean(info.group_messaging)),
            ('NrOfRXPDO', str(info.nr_of_rx_pdo)),
            ('NrOfTXPDO', str(info.nr_of_tx_pdo)),
            ('LSS_Supported', format_boolean(info.lss_supported)),
        ]
        if info.compact_pdo > 0:
            pairs.append(('CompactPDO', format_integer(info.compact_pdo)))
        if info.canopen_safety_supported:
            pairs.append(('CANopenSafetySupported', format_boolean(True)))
        return pairs

    def _commissioning_pairs(self, doc) -> _Pairs:
        # Template documents carry no commissioning block
        dc = getattr(doc, 'device_commissioning', None) or DeviceCommissioning()
        pairs = [
            ('NodeID', str(dc.node_id)),
            ('NodeName', dc.node_name),
            ('Baudrate', str(dc.baudrate)),
            ('NetNumber', str(dc.net_number)),
            ('NetworkName', dc.network_name),
            ('CANopenManager', format_boolean(dc.canopen_manager)),
        ]
        if dc.lss_serial_number is not None:
            pairs.append(('LSS_SerialNumber', str(dc.lss_serial_number)))
        if dc.node_refd:
            pairs.append(('NodeRefd', dc.node_refd))
        if dc.net_refd:
            pairs.append(('NetRefd', dc.net_refd))
        return pairs

    def _dynamic_channel_pairs(self, doc) -> _Pairs:
        segments = doc.dynamic_channels.segments
        pairs = [('NrOfSeg', str(len(segments)))]
        for i, segment in enumerate(segments, start=1):
            pairs += [
                (f'Type{i}', format_integer(segment.type)),
                (f'Dir{i}', access_type_to_string(segment.dir)),
                (f'Range{i}', segment.range),
                (f'PPOffset{i}', str(segment.pp_offset)),
            ]
        return pairs

    # -------------------------------------------------------------------------
    # Objects
    # -------------------------------------------------------------------------

    def _object_pairs(self, obj: CanOpenObject) -> _Pairs:
        pairs = []
        if obj.sub_number:
            pairs.append(('SubNumber', str(obj.sub_number)))
        pairs.append(('ParameterName', obj.parameter_name))
        pairs.append(('ObjectType', format_integer(int(obj.object_type))))
        if obj.data_type is not None:
            pairs.append(('DataType', format_integer(obj.data_type)))
        pairs.append(('AccessType', access_type_to_string(obj.access_type)))
        pairs += self._limits(obj)
        if obj.obj_flags > 0:
            pairs.append(('ObjFlags', format_integer(obj.obj_flags)))
        if obj.compact_sub_obj:
            pairs.append(('CompactSubObj', str(obj.compact_sub_obj)))
        if self.dialect.configured_values:
            for key, value in (('ParameterValue', obj.parameter_value),
                               ('Denotation', obj.denotation),
                               ('UploadFile', obj.upload_file),
                               ('DownloadFile', obj.download_file),
                               ('ParamRefd', obj.param_refd)):
                if value:
                    pairs.append((key, value))
        return pairs

    def _sub_object_pairs(self, sub: CanOpenSubObject) -> _Pairs:
        pairs = [
            ('ParameterName', sub.parameter_name),
            ('ObjectType', format_integer(int(sub.object_type))),
            ('DataType', format_integer(sub.data_type)),
            ('AccessType', access_type_to_string(sub.access_type)),
        ]
        pairs += self._limits(sub)
        if self.dialect.configured_values:
            for key, value in (('ParameterValue', sub.parameter_value),
                               ('Denotation', sub.denotation),
                               ('ParamRefd', sub.param_refd)):
                if value:
                    pairs.append((key, value))
        return pairs

    @staticmethod
    def _limits(entry) -> _Pairs:
        """Keys shared by objects and sub-objects, DefaultValue through InvertedSRAD."""
        pairs = []
        for key, value in (('DefaultValue', entry.default_value),
                           ('LowLimit', entry.low_limit),
                           ('HighLimit', entry.high_limit)):
            if value:
                pairs.append((key, value))
        pairs.append(('PDOMapping', format_boolean(entry.pdo_mapping)))
        if entry.srdo_mapping:
            pairs.append(('SRDOMapping', format_boolean(True)))
        if entry.inverted_srad:
            pairs.append(('InvertedSRAD', entry.inverted_srad))
        return pairs

    def _write_object(self, obj: CanOpenObject, prefix: str = ''):
        name = f"{prefix}{obj.index:X}"
        self._emit(name, lambda: self._object_pairs(obj))
        for sub_index in sorted(obj.sub_objects):
            sub = obj.sub_objects[sub_index]
            self._emit(f"{name}sub{sub_index:X}", lambda sub=sub: self._sub_object_pairs(sub))

        if prefix or not obj.object_links:
            return
        self._linked.add(obj.index)
        stored = self._links_by_index.get(obj.index)
        if stored is not None and _decode_links(stored[1]) == obj.object_links:
            # Unchanged since reading: reproduce the stored section verbatim
            self._emit(stored[0], lambda: list(stored[1].items()))
        else:
            self._emit(f"{obj.index:X}ObjectLinks",
                       lambda: _numbered('ObjectLinks', obj.object_links))

    # -------------------------------------------------------------------------
    # Modules
    # -------------------------------------------------------------------------

    def _write_modules(self, modules: List[ModuleInfo]):
        # Modules are numbered; the count must reach the highest number
        count = max([len(modules)] + [m.module_number for m in modules])
        self._emit('SupportedModules', lambda: [('NrOfEntries', str(count))])

        for module in modules:
            n = module.module_number
            self._emit(f"M{n}ModuleInfo", lambda module=module: [
                ('ProductName', module.product_name),
                ('ProductVersion', str(module.product_version)),
                ('ProductRevision', str(module.product_revision)),
                ('OrderCode', module.order_code),
            ])
            if module.fixed_objects:
                self._emit(f"M{n}FixedObjects",
                           lambda module=module: _numbered('NrOfEntries', module.fixed_objects))
            for index in sorted(module.fixed_object_definitions):
                self._write_object(module.fixed_object_definitions[index], prefix=f"M{n}Fixed")
            if module.sub_extends:
                self._emit(f"M{n}SubExtends",
                           lambda module=module: _numbered('NrOfEntries', module.sub_extends))
            for index in sorted(module.sub_extension_definitions):
                ext = module.sub_extension_definitions[index]
                self._emit(f"M{n}SubExt{index:X}", lambda ext=ext: self._sub_extension_pairs(ext))
            if module.comments is not None:
                self._emit(f"M{n}Comments",
                           lambda module=module: _comment_pairs(module.comments))

    @staticmethod
    def _sub_extension_pairs(ext) -> _Pairs:
        pairs = [
            ('ParameterName', ext.parameter_name),
            ('DataType', format_integer(ext.data_type)),
            ('AccessType', access_type_to_string(ext.access_type)),
        ]
        if ext.default_value:
            pairs.append(('DefaultValue', ext.default_value))
        pairs.append(('PDOMapping', format_boolean(ext.pdo_mapping)))
        pairs.append(('Count', ext.count))
        if ext.obj_extend is not None:
            pairs.append(('ObjExtend', format_integer(ext.obj_extend)))
        return pairs

    # -------------------------------------------------------------------------
    # Additional sections
    # -------------------------------------------------------------------------

    def _bag_object_links(self, doc) -> Dict[int, Tuple[str, Dict[str, str]]]:
        links = {}
        for name, entries in doc.additional_sections.items():
            cls = classify_section(name, self.dialect)
            if cls.kind is SectionKind.OBJECT_LINKS:
                links.setdefault(cls.index, (name, entries))
        return links

    def _write_additional_sections(self, doc):
        for name, entries in doc.additional_sections.items():
            if name.lower() in self._emitted:
                logger.debug("Skipping additional section [%s], already written", name)
                continue
            cls = classify_section(name, self.dialect)
            if cls.kind is SectionKind.OBJECT_LINKS and cls.index in self._linked:
                logger.debug("Skipping additional section [%s], links written", name)
                continue
            self._emit(name, lambda entries=entries: list(entries.items()))


class ObjectDictionaryEncoder:
    """Encodes ElectronicDataSheet / DeviceConfigurationFile trees.

    An encoder holds only its dialect, so one instance can be shared.
    """

    def __init__(self, dialect: Dialect):
        self.dialect = dialect

    def encode(self, doc: ElectronicDataSheet) -> str:
        """
        Render a document to text.

        A template document encoded with the configuration dialect gets a
        default [DeviceCommissioning] section.

        Raises:
            DcfWriteError: a section could not be rendered; section_name
                names the offending section
        """
        return _Encoding(self.dialect, doc).render()
