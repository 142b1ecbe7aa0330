#!/usr/bin/env python3
"""
canopen_file.py - Read, write and derive CiA 306 EDS/DCF files

Facade over the tokenizer, assembler and encoder. Only the functions in this
module touch the file system.

Usage:
    python canopen_file.py dump device.eds
    python canopen_file.py dump node5.dcf -o node5.yaml
    python canopen_file.py derive device.eds --node-id 5 --baudrate 500 -o node5.dcf
    python canopen_file.py normalize node5.dcf -o node5_clean.dcf

    from canopen_file import read_eds, eds_to_dcf, write_dcf

    eds = read_eds('device.eds')
    dcf = eds_to_dcf(eds, node_id=5, baudrate=500)
    write_dcf(dcf, 'node5.dcf')
"""

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

import yaml

from dialects import CONFIGURATION, TEMPLATE, Dialect
from errors import DcfWriteError, EdsDecodeError
from ini_sections import parse_sections
from object_dictionary import (
    DeviceCommissioning, DeviceConfigurationFile, ElectronicDataSheet, FileInfo,
)
from od_assembler import ObjectDictionaryAssembler
from od_encoder import ObjectDictionaryEncoder


logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

# Derivation defaults
DEFAULT_BAUDRATE = 250
DEFAULT_NET_NUMBER = 1
DEFAULT_NETWORK_NAME = 'CANopen Network'
CREATED_BY = 'canopen-eds-tools'
MIN_NODE_ID = 1
MAX_NODE_ID = 127


# =============================================================================
# Reading
# =============================================================================

def parse_document(content: Union[str, bytes], dialect: Dialect) -> ElectronicDataSheet:
    """Tokenize and assemble text in the given dialect."""
    return ObjectDictionaryAssembler(dialect).assemble(parse_sections(content))


def read_eds_from_string(content: Union[str, bytes]) -> ElectronicDataSheet:
    return parse_document(content, TEMPLATE)


def read_dcf_from_string(content: Union[str, bytes]) -> DeviceConfigurationFile:
    return parse_document(content, CONFIGURATION)


def _read_bytes(path: PathLike) -> bytes:
    path = Path(path)
    logger.debug("Reading %s", path)
    return path.read_bytes()


def read_eds(path: PathLike) -> ElectronicDataSheet:
    """
    Read an Electronic Data Sheet.

    Raises:
        EdsDecodeError: the content cannot be decoded
        OSError: the file cannot be read
    """
    return read_eds_from_string(_read_bytes(path))


def read_dcf(path: PathLike) -> DeviceConfigurationFile:
    """Read a Device Configuration File. Raises like read_eds()."""
    return read_dcf_from_string(_read_bytes(path))


# =============================================================================
# Writing
# =============================================================================

def write_eds_to_string(eds: ElectronicDataSheet) -> str:
    return ObjectDictionaryEncoder(TEMPLATE).encode(eds)


def write_dcf_to_string(dcf: DeviceConfigurationFile) -> str:
    return ObjectDictionaryEncoder(CONFIGURATION).encode(dcf)


def _write_text(text: str, path: PathLike):
    path = Path(path)
    try:
        path.write_text(text, encoding='utf-8')
    except OSError as exc:
        raise DcfWriteError(f"Failed to write {path}: {exc}", target=str(path)) from exc
    logger.debug("Wrote %d characters to %s", len(text), path)


def _encode_for(doc, encode, path: PathLike) -> str:
    try:
        return encode(doc)
    except DcfWriteError as exc:
        exc.target = str(path)
        raise


def write_eds(eds: ElectronicDataSheet, path: PathLike):
    """
    Encode and write an Electronic Data Sheet.

    Raises:
        DcfWriteError: encoding failed or the file cannot be written;
            target is the path
    """
    _write_text(_encode_for(eds, write_eds_to_string, path), path)


def write_dcf(dcf: DeviceConfigurationFile, path: PathLike):
    """Encode and write a Device Configuration File. Raises like write_eds()."""
    _write_text(_encode_for(dcf, write_dcf_to_string, path), path)


# =============================================================================
# Derivation
# =============================================================================

def _dcf_file_name(eds_name: str) -> str:
    if eds_name.lower().endswith('.eds'):
        return eds_name[:-4] + '.dcf'
    return eds_name


def eds_to_dcf(eds: ElectronicDataSheet, node_id: int, baudrate: int = DEFAULT_BAUDRATE,
               node_name: Optional[str] = None,
               now: Optional[datetime] = None) -> DeviceConfigurationFile:
    """
    Derive a configuration for one node from a template.

    The result shares no mutable state with ``eds``; every nested list,
    dict and object is copied.

    Args:
        eds: Source template
        node_id: Node id, 1..127
        baudrate: Bus speed in kbit/s
        node_name: Defaults to '<ProductName>_Node<node_id>'
        now: Timestamp for the creation date/time (defaults to now)

    Raises:
        ValueError: node_id out of range
    """
    if not MIN_NODE_ID <= node_id <= MAX_NODE_ID:
        raise ValueError(f"Node id {node_id} out of range {MIN_NODE_ID}..{MAX_NODE_ID}")

    now = now or datetime.now()
    source = eds.file_info
    common = eds.clone()

    dcf = DeviceConfigurationFile(
        file_info=FileInfo(
            file_name=_dcf_file_name(source.file_name),
            file_version=source.file_version,
            file_revision=(source.file_revision + 1) & 0xFF,
            eds_version=source.eds_version,
            description=f"DCF generated from {source.file_name}",
            creation_date=now.strftime('%m-%d-%Y'),
            creation_time=now.strftime('%I:%M%p'),
            created_by=CREATED_BY,
            last_eds=source.file_name or None,
        ),
        device_info=common.device_info,
        device_commissioning=DeviceCommissioning(
            node_id=node_id,
            node_name=node_name or f"{eds.device_info.product_name}_Node{node_id}",
            baudrate=baudrate,
            net_number=DEFAULT_NET_NUMBER,
            network_name=DEFAULT_NETWORK_NAME,
            canopen_manager=False,
        ),
        object_dictionary=common.object_dictionary,
        comments=common.comments,
        supported_modules=common.supported_modules,
        dynamic_channels=common.dynamic_channels,
        tools=common.tools,
        additional_sections=common.additional_sections,
    )
    logger.debug("Derived DCF for node %d from %s", node_id, source.file_name or '<unnamed>')
    return dcf


# =============================================================================
# CLI
# =============================================================================

def _dialect_for(path: Path, force_dcf: bool) -> Dialect:
    if force_dcf or path.suffix.lower() == CONFIGURATION.file_suffix:
        return CONFIGURATION
    return TEMPLATE


def _output(text: str, output: Optional[Path]):
    if output:
        _write_text(text, output)
        print(f"Written to {output}", file=sys.stderr)
    else:
        print(text, end='')


def main(argv=None):
    parser = argparse.ArgumentParser(description='CiA 306 EDS/DCF reader and writer')
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable debug logging')
    subparsers = parser.add_subparsers(dest='command', required=True)

    # Dump
    dmp = subparsers.add_parser('dump', help='Print the parsed document as YAML')
    dmp.add_argument('input', type=Path, help='Input EDS/DCF file')
    dmp.add_argument('--dcf', action='store_true', help='Parse as DCF regardless of suffix')
    dmp.add_argument('-o', '--output', type=Path, help='Output YAML file')

    # Derive
    drv = subparsers.add_parser('derive', help='Derive a DCF from an EDS')
    drv.add_argument('input', type=Path, help='Input EDS file')
    drv.add_argument('--node-id', type=int, required=True, help='Node id (1-127)')
    drv.add_argument('--baudrate', type=int, default=DEFAULT_BAUDRATE,
                     help='Bus speed in kbit/s (default: 250)')
    drv.add_argument('--node-name', help='Node name')
    drv.add_argument('-o', '--output', type=Path, help='Output DCF file')

    # Normalize
    nrm = subparsers.add_parser('normalize', help='Parse and re-encode a file')
    nrm.add_argument('input', type=Path, help='Input EDS/DCF file')
    nrm.add_argument('--dcf', action='store_true', help='Treat as DCF regardless of suffix')
    nrm.add_argument('-o', '--output', type=Path, help='Output file')

    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format='%(levelname)s %(name)s: %(message)s')

    try:
        if args.command == 'dump':
            dialect = _dialect_for(args.input, args.dcf)
            doc = parse_document(_read_bytes(args.input), dialect)
            _output(yaml.safe_dump(doc.to_dict(), default_flow_style=False, sort_keys=False),
                    args.output)

        elif args.command == 'derive':
            dcf = eds_to_dcf(read_eds(args.input), args.node_id, args.baudrate,
                             args.node_name)
            _output(write_dcf_to_string(dcf), args.output)

        elif args.command == 'normalize':
            dialect = _dialect_for(args.input, args.dcf)
            doc = parse_document(_read_bytes(args.input), dialect)
            _output(ObjectDictionaryEncoder(dialect).encode(doc), args.output)

    except (EdsDecodeError, DcfWriteError, ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
