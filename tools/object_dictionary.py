#!/usr/bin/env python3
"""
object_dictionary.py - Typed model of EDS/DCF documents

Data classes for the object dictionary (objects, sub-objects, index lists,
dummy usage), module extensions, device/file metadata and the two document
kinds (ElectronicDataSheet for templates, DeviceConfigurationFile for
configured nodes).

Every structure provides clone(), an explicit recursive copy: a cloned tree
shares no mutable list, dict or nested object with its source. to_dict()
produces plain data suitable for yaml.safe_dump.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

from value_converter import AccessType, ObjectCode, parse_integer


# PDO parameter ranges (CiA 301)
RPDO_COMMUNICATION = (0x1400, 0x15FF)
RPDO_MAPPING = (0x1600, 0x17FF)
TPDO_COMMUNICATION = (0x1800, 0x19FF)
TPDO_MAPPING = (0x1A00, 0x1BFF)


class ObjectCategory(Enum):
    MANDATORY = 'mandatory'
    OPTIONAL = 'optional'
    MANUFACTURER = 'manufacturer'


def _object_code_name(value: int) -> Any:
    try:
        return ObjectCode(value).name
    except ValueError:
        return value


def _drop_none(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


# =============================================================================
# Objects
# =============================================================================

@dataclass
class CanOpenSubObject:
    """Sub-object addressed by index + sub-index. Sub-objects do not nest."""
    sub_index: int
    parameter_name: str = ''
    object_type: int = ObjectCode.VAR
    data_type: int = 0
    access_type: AccessType = AccessType.READ_ONLY
    default_value: Optional[str] = None
    low_limit: Optional[str] = None
    high_limit: Optional[str] = None
    pdo_mapping: bool = False
    srdo_mapping: bool = False
    inverted_srad: Optional[str] = None
    # Configuration dialect only
    parameter_value: Optional[str] = None
    denotation: Optional[str] = None
    param_refd: Optional[str] = None

    def clone(self) -> 'CanOpenSubObject':
        # All fields are immutable scalars
        return CanOpenSubObject(**{name: getattr(self, name)
                                   for name in self.__dataclass_fields__})

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            'sub_index': self.sub_index,
            'parameter_name': self.parameter_name,
            'object_type': _object_code_name(self.object_type),
            'data_type': self.data_type,
            'access_type': self.access_type.value,
            'default_value': self.default_value,
            'low_limit': self.low_limit,
            'high_limit': self.high_limit,
            'pdo_mapping': self.pdo_mapping,
            'srdo_mapping': self.srdo_mapping,
            'inverted_srad': self.inverted_srad,
            'parameter_value': self.parameter_value,
            'denotation': self.denotation,
            'param_refd': self.param_refd,
        })


@dataclass
class CanOpenObject:
    """Object dictionary entry at a 16-bit index."""
    index: int
    parameter_name: str = ''
    object_type: int = ObjectCode.VAR
    data_type: Optional[int] = None
    access_type: AccessType = AccessType.READ_ONLY
    default_value: Optional[str] = None
    low_limit: Optional[str] = None
    high_limit: Optional[str] = None
    pdo_mapping: bool = False
    srdo_mapping: bool = False
    inverted_srad: Optional[str] = None
    obj_flags: int = 0
    sub_number: Optional[int] = None
    compact_sub_obj: Optional[int] = None
    object_links: List[int] = field(default_factory=list)
    sub_objects: Dict[int, CanOpenSubObject] = field(default_factory=dict)
    # Configuration dialect only
    parameter_value: Optional[str] = None
    denotation: Optional[str] = None
    upload_file: Optional[str] = None
    download_file: Optional[str] = None
    param_refd: Optional[str] = None

    def clone(self) -> 'CanOpenObject':
        return CanOpenObject(
            index=self.index,
            parameter_name=self.parameter_name,
            object_type=self.object_type,
            data_type=self.data_type,
            access_type=self.access_type,
            default_value=self.default_value,
            low_limit=self.low_limit,
            high_limit=self.high_limit,
            pdo_mapping=self.pdo_mapping,
            srdo_mapping=self.srdo_mapping,
            inverted_srad=self.inverted_srad,
            obj_flags=self.obj_flags,
            sub_number=self.sub_number,
            compact_sub_obj=self.compact_sub_obj,
            object_links=list(self.object_links),
            sub_objects={k: sub.clone() for k, sub in self.sub_objects.items()},
            parameter_value=self.parameter_value,
            denotation=self.denotation,
            upload_file=self.upload_file,
            download_file=self.download_file,
            param_refd=self.param_refd,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = _drop_none({
            'index': f"0x{self.index:04X}",
            'parameter_name': self.parameter_name,
            'object_type': _object_code_name(self.object_type),
            'data_type': self.data_type,
            'access_type': self.access_type.value,
            'default_value': self.default_value,
            'low_limit': self.low_limit,
            'high_limit': self.high_limit,
            'pdo_mapping': self.pdo_mapping,
            'srdo_mapping': self.srdo_mapping,
            'inverted_srad': self.inverted_srad,
            'obj_flags': self.obj_flags,
            'sub_number': self.sub_number,
            'compact_sub_obj': self.compact_sub_obj,
            'parameter_value': self.parameter_value,
            'denotation': self.denotation,
            'upload_file': self.upload_file,
            'download_file': self.download_file,
            'param_refd': self.param_refd,
        })
        if self.object_links:
            data['object_links'] = [f"0x{i:04X}" for i in self.object_links]
        if self.sub_objects:
            data['sub_objects'] = [self.sub_objects[k].to_dict()
                                   for k in sorted(self.sub_objects)]
        return data


@dataclass
class ObjectDictionary:
    """Index lists, object definitions and dummy usage of one device."""
    mandatory_objects: List[int] = field(default_factory=list)
    optional_objects: List[int] = field(default_factory=list)
    manufacturer_objects: List[int] = field(default_factory=list)
    objects: Dict[int, CanOpenObject] = field(default_factory=dict)
    dummy_usage: Dict[int, bool] = field(default_factory=dict)

    def clone(self) -> 'ObjectDictionary':
        return ObjectDictionary(
            mandatory_objects=list(self.mandatory_objects),
            optional_objects=list(self.optional_objects),
            manufacturer_objects=list(self.manufacturer_objects),
            objects={k: obj.clone() for k, obj in self.objects.items()},
            dummy_usage=dict(self.dummy_usage),
        )

    def get_object(self, index: int) -> Optional[CanOpenObject]:
        return self.objects.get(index)

    def get_sub_object(self, index: int, sub_index: int) -> Optional[CanOpenSubObject]:
        obj = self.objects.get(index)
        if obj is None:
            return None
        return obj.sub_objects.get(sub_index)

    def set_parameter_value(self, index: int, value: str,
                            sub_index: Optional[int] = None) -> bool:
        """Set the configured value; returns False when the target does not exist."""
        target = (self.get_object(index) if sub_index is None
                  else self.get_sub_object(index, sub_index))
        if target is None:
            return False
        target.parameter_value = value
        return True

    def get_parameter_value(self, index: int,
                            sub_index: Optional[int] = None) -> Optional[str]:
        """Configured value, falling back to the default value."""
        target = (self.get_object(index) if sub_index is None
                  else self.get_sub_object(index, sub_index))
        if target is None:
            return None
        if target.parameter_value is not None:
            return target.parameter_value
        return target.default_value

    def resolve_integer(self, index: int, sub_index: Optional[int] = None,
                        node_id: Optional[int] = None, bits: int = 32) -> Optional[int]:
        """Effective value decoded as an integer; $NODEID formulas need node_id."""
        value = self.get_parameter_value(index, sub_index)
        if value is None:
            return None
        return parse_integer(value, bits, node_id)

    def objects_by_category(self, category: ObjectCategory) -> List[CanOpenObject]:
        indices = {
            ObjectCategory.MANDATORY: self.mandatory_objects,
            ObjectCategory.OPTIONAL: self.optional_objects,
            ObjectCategory.MANUFACTURER: self.manufacturer_objects,
        }[category]
        return [self.objects[i] for i in indices if i in self.objects]

    def _objects_in_range(self, bounds) -> List[CanOpenObject]:
        low, high = bounds
        return [self.objects[i] for i in sorted(self.objects) if low <= i <= high]

    def pdo_communication_parameters(self, transmit: bool = True) -> List[CanOpenObject]:
        return self._objects_in_range(TPDO_COMMUNICATION if transmit else RPDO_COMMUNICATION)

    def pdo_mapping_parameters(self, transmit: bool = True) -> List[CanOpenObject]:
        return self._objects_in_range(TPDO_MAPPING if transmit else RPDO_MAPPING)

    def all_listed_indices(self) -> Iterator[int]:
        """Listed indices in list order, without duplicates."""
        seen = set()
        for index in (self.mandatory_objects + self.optional_objects
                      + self.manufacturer_objects):
            if index not in seen:
                seen.add(index)
                yield index

    def to_dict(self) -> Dict[str, Any]:
        return {
            'mandatory_objects': [f"0x{i:04X}" for i in self.mandatory_objects],
            'optional_objects': [f"0x{i:04X}" for i in self.optional_objects],
            'manufacturer_objects': [f"0x{i:04X}" for i in self.manufacturer_objects],
            'dummy_usage': {f"0x{k:04X}": v for k, v in sorted(self.dummy_usage.items())},
            'objects': [self.objects[k].to_dict() for k in sorted(self.objects)],
        }


# =============================================================================
# Modules
# =============================================================================

@dataclass
class Comments:
    lines: int = 0
    comment_lines: Dict[int, str] = field(default_factory=dict)

    def clone(self) -> 'Comments':
        return Comments(lines=self.lines, comment_lines=dict(self.comment_lines))

    def to_dict(self) -> Dict[str, Any]:
        return {'lines': self.lines,
                'comment_lines': {k: v for k, v in sorted(self.comment_lines.items())}}


@dataclass
class ModuleSubExtension:
    """Definition of sub-indices an object gains per attached module instance."""
    index: int
    parameter_name: str = ''
    data_type: int = 0
    access_type: AccessType = AccessType.READ_ONLY
    default_value: Optional[str] = None
    pdo_mapping: bool = False
    count: str = ''
    obj_extend: Optional[int] = None

    def clone(self) -> 'ModuleSubExtension':
        return ModuleSubExtension(**{name: getattr(self, name)
                                     for name in self.__dataclass_fields__})

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            'index': f"0x{self.index:04X}",
            'parameter_name': self.parameter_name,
            'data_type': self.data_type,
            'access_type': self.access_type.value,
            'default_value': self.default_value,
            'pdo_mapping': self.pdo_mapping,
            'count': self.count,
            'obj_extend': self.obj_extend,
        })


@dataclass
class ModuleInfo:
    """Module extension block ([M<n>ModuleInfo] and its companions)."""
    module_number: int
    product_name: str = ''
    product_version: int = 1
    product_revision: int = 0
    order_code: str = ''
    fixed_objects: List[int] = field(default_factory=list)
    fixed_object_definitions: Dict[int, CanOpenObject] = field(default_factory=dict)
    sub_extends: List[int] = field(default_factory=list)
    sub_extension_definitions: Dict[int, ModuleSubExtension] = field(default_factory=dict)
    comments: Optional[Comments] = None

    def clone(self) -> 'ModuleInfo':
        return ModuleInfo(
            module_number=self.module_number,
            product_name=self.product_name,
            product_version=self.product_version,
            product_revision=self.product_revision,
            order_code=self.order_code,
            fixed_objects=list(self.fixed_objects),
            fixed_object_definitions={k: obj.clone()
                                      for k, obj in self.fixed_object_definitions.items()},
            sub_extends=list(self.sub_extends),
            sub_extension_definitions={k: ext.clone()
                                       for k, ext in self.sub_extension_definitions.items()},
            comments=self.comments.clone() if self.comments else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'module_number': self.module_number,
            'product_name': self.product_name,
            'product_version': self.product_version,
            'product_revision': self.product_revision,
            'order_code': self.order_code,
            'fixed_objects': [f"0x{i:04X}" for i in self.fixed_objects],
            'fixed_object_definitions': [self.fixed_object_definitions[k].to_dict()
                                         for k in sorted(self.fixed_object_definitions)],
            'sub_extends': [f"0x{i:04X}" for i in self.sub_extends],
            'sub_extension_definitions': [self.sub_extension_definitions[k].to_dict()
                                          for k in sorted(self.sub_extension_definitions)],
        }
        if self.comments is not None:
            data['comments'] = self.comments.to_dict()
        return data


# =============================================================================
# Device and file metadata
# =============================================================================

BAUD_RATES = (10, 20, 50, 125, 250, 500, 800, 1000)


@dataclass
class BaudRates:
    baud_rate_10: bool = False
    baud_rate_20: bool = False
    baud_rate_50: bool = False
    baud_rate_125: bool = False
    baud_rate_250: bool = False
    baud_rate_500: bool = False
    baud_rate_800: bool = False
    baud_rate_1000: bool = False

    def supports(self, kbit: int) -> bool:
        return getattr(self, f'baud_rate_{kbit}', False)

    def clone(self) -> 'BaudRates':
        return BaudRates(**{name: getattr(self, name) for name in self.__dataclass_fields__})


@dataclass
class DeviceInfo:
    vendor_name: str = ''
    vendor_number: int = 0
    product_name: str = ''
    product_number: int = 0
    revision_number: int = 0
    order_code: str = ''
    supported_baud_rates: BaudRates = field(default_factory=BaudRates)
    simple_boot_up_master: bool = False
    simple_boot_up_slave: bool = False
    granularity: int = 8
    dynamic_channels_supported: int = 0
    group_messaging: bool = False
    nr_of_rx_pdo: int = 0
    nr_of_tx_pdo: int = 0
    lss_supported: bool = False
    compact_pdo: int = 0
    canopen_safety_supported: bool = False

    def clone(self) -> 'DeviceInfo':
        values = {name: getattr(self, name) for name in self.__dataclass_fields__}
        values['supported_baud_rates'] = self.supported_baud_rates.clone()
        return DeviceInfo(**values)

    def to_dict(self) -> Dict[str, Any]:
        data = {name: getattr(self, name) for name in self.__dataclass_fields__}
        data['supported_baud_rates'] = [kbit for kbit in BAUD_RATES
                                        if self.supported_baud_rates.supports(kbit)]
        return data


@dataclass
class FileInfo:
    file_name: str = ''
    file_version: int = 1
    file_revision: int = 0
    eds_version: str = '4.0'
    description: str = ''
    creation_time: str = ''
    creation_date: str = ''
    created_by: str = ''
    modification_time: str = ''
    modification_date: str = ''
    modified_by: str = ''
    # Configuration dialect only
    last_eds: Optional[str] = None

    def clone(self) -> 'FileInfo':
        return FileInfo(**{name: getattr(self, name) for name in self.__dataclass_fields__})

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({name: getattr(self, name) for name in self.__dataclass_fields__})


@dataclass
class DeviceCommissioning:
    node_id: int = 1
    node_name: str = ''
    baudrate: int = 250
    net_number: int = 0
    network_name: str = ''
    canopen_manager: bool = False
    lss_serial_number: Optional[int] = None
    node_refd: Optional[str] = None
    net_refd: Optional[str] = None

    def clone(self) -> 'DeviceCommissioning':
        return DeviceCommissioning(**{name: getattr(self, name)
                                      for name in self.__dataclass_fields__})

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({name: getattr(self, name) for name in self.__dataclass_fields__})


@dataclass
class ToolInfo:
    name: str = ''
    command: str = ''

    def clone(self) -> 'ToolInfo':
        return ToolInfo(name=self.name, command=self.command)

    def to_dict(self) -> Dict[str, Any]:
        return {'name': self.name, 'command': self.command}


@dataclass
class DynamicChannelSegment:
    type: int = 0
    dir: AccessType = AccessType.READ_ONLY
    range: str = ''
    pp_offset: int = 0

    def clone(self) -> 'DynamicChannelSegment':
        return DynamicChannelSegment(type=self.type, dir=self.dir,
                                     range=self.range, pp_offset=self.pp_offset)

    def to_dict(self) -> Dict[str, Any]:
        return {'type': f"0x{self.type:04X}", 'dir': self.dir.value,
                'range': self.range, 'pp_offset': self.pp_offset}


@dataclass
class DynamicChannels:
    segments: List[DynamicChannelSegment] = field(default_factory=list)

    def clone(self) -> 'DynamicChannels':
        return DynamicChannels(segments=[s.clone() for s in self.segments])

    def to_dict(self) -> Dict[str, Any]:
        return {'segments': [s.to_dict() for s in self.segments]}


# =============================================================================
# Documents
# =============================================================================

@dataclass
class ElectronicDataSheet:
    """Template (EDS) document."""
    file_info: FileInfo = field(default_factory=FileInfo)
    device_info: DeviceInfo = field(default_factory=DeviceInfo)
    object_dictionary: ObjectDictionary = field(default_factory=ObjectDictionary)
    comments: Optional[Comments] = None
    supported_modules: List[ModuleInfo] = field(default_factory=list)
    dynamic_channels: Optional[DynamicChannels] = None
    tools: List[ToolInfo] = field(default_factory=list)
    # Sections not recognized by the assembler, kept verbatim in encounter order
    additional_sections: Dict[str, Dict[str, str]] = field(default_factory=dict)

    def _clone_common(self) -> Dict[str, Any]:
        return {
            'file_info': self.file_info.clone(),
            'device_info': self.device_info.clone(),
            'object_dictionary': self.object_dictionary.clone(),
            'comments': self.comments.clone() if self.comments else None,
            'supported_modules': [m.clone() for m in self.supported_modules],
            'dynamic_channels': self.dynamic_channels.clone() if self.dynamic_channels else None,
            'tools': [t.clone() for t in self.tools],
            'additional_sections': {name: dict(entries)
                                    for name, entries in self.additional_sections.items()},
        }

    def clone(self) -> 'ElectronicDataSheet':
        return ElectronicDataSheet(**self._clone_common())

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'file_info': self.file_info.to_dict(),
            'device_info': self.device_info.to_dict(),
            'object_dictionary': self.object_dictionary.to_dict(),
        }
        if self.comments is not None:
            data['comments'] = self.comments.to_dict()
        if self.supported_modules:
            data['supported_modules'] = [m.to_dict() for m in self.supported_modules]
        if self.dynamic_channels is not None:
            data['dynamic_channels'] = self.dynamic_channels.to_dict()
        if self.tools:
            data['tools'] = [t.to_dict() for t in self.tools]
        if self.additional_sections:
            data['additional_sections'] = {name: dict(entries)
                                           for name, entries in self.additional_sections.items()}
        return data


@dataclass
class DeviceConfigurationFile(ElectronicDataSheet):
    """Configuration (DCF) document: a template plus node-specific settings."""
    device_commissioning: DeviceCommissioning = field(default_factory=DeviceCommissioning)
    connected_modules: List[int] = field(default_factory=list)

    def clone(self) -> 'DeviceConfigurationFile':
        return DeviceConfigurationFile(
            device_commissioning=self.device_commissioning.clone(),
            connected_modules=list(self.connected_modules),
            **self._clone_common(),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data['device_commissioning'] = self.device_commissioning.to_dict()
        if self.connected_modules:
            data['connected_modules'] = list(self.connected_modules)
        return data
