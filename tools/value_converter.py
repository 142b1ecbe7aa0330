#!/usr/bin/env python3
"""
value_converter.py - Literal decoder for EDS/DCF values

Converts the raw strings found in EDS/DCF files into typed values and back.

Integer literals (checked in this order):
    ''                      -> 0
    $NODEID[+|-<literal>]   -> node id relative value (needs a node id)
    0x1A / 0X1A             -> hexadecimal
    0377                    -> octal (leading 0 followed by a digit)
    26                      -> decimal

Booleans are total: '1', 'true', 'yes' (any case) are true, everything else
is false. Access types are total too: unknown tokens decode to read-only.

Usage:
    from value_converter import parse_integer, parse_access_type

    parse_integer('0x1A')                       # 26
    parse_integer('$NODEID+0x200', node_id=5)   # 517
    parse_access_type('rww')                    # AccessType.READ_WRITE_OUTPUT
"""

import re
from enum import Enum, IntEnum
from typing import Optional

from errors import EdsDecodeError


class AccessType(Enum):
    """Object access mode; the value is the canonical file token."""
    READ_ONLY = 'ro'
    WRITE_ONLY = 'wo'
    READ_WRITE = 'rw'
    READ_WRITE_INPUT = 'rwr'
    READ_WRITE_OUTPUT = 'rww'
    CONSTANT = 'const'


class ObjectCode(IntEnum):
    """CiA 301 object codes as used in the ObjectType key."""
    NULL = 0x0
    DOMAIN = 0x2
    DEFTYPE = 0x5
    DEFSTRUCT = 0x6
    VAR = 0x7
    ARRAY = 0x8
    RECORD = 0x9


NODE_ID_TOKEN = '$NODEID'

_HEX_RE = re.compile(r'^[0-9A-Fa-f]+$')
_OCT_RE = re.compile(r'^[0-7]+$')
_DEC_RE = re.compile(r'^[0-9]+$')

_ACCESS_TOKENS = {access.value: access for access in AccessType}


def _parse_plain(value: str, bits: int, original: str) -> int:
    """Decode a literal without $NODEID support."""
    if value[:2] in ('0x', '0X'):
        digits, base, pattern = value[2:], 16, _HEX_RE
    elif len(value) > 1 and value[0] == '0' and value[1].isdigit():
        digits, base, pattern = value, 8, _OCT_RE
    else:
        digits, base, pattern = value, 10, _DEC_RE

    if not pattern.match(digits):
        raise EdsDecodeError(f"Invalid {bits}-bit integer literal: {original!r}")

    result = int(digits, base)
    if result >= (1 << bits):
        raise EdsDecodeError(
            f"Integer literal {original!r} does not fit in {bits} bits")
    return result


def _evaluate_node_id(value: str, bits: int, node_id: Optional[int]) -> int:
    """Evaluate '$NODEID', '$NODEID+<literal>' or '$NODEID-<literal>'."""
    if node_id is None:
        raise EdsDecodeError(
            f"Cannot evaluate {value!r} without a node id")

    rest = value[len(NODE_ID_TOKEN):].strip()
    if not rest:
        result = node_id
    else:
        operator, operand = rest[0], rest[1:].strip()
        if operator not in '+-' or not operand or '+' in operand or '-' in operand:
            raise EdsDecodeError(f"Malformed node id formula: {value!r}")
        offset = _parse_plain(operand, bits, value)
        result = node_id + offset if operator == '+' else node_id - offset

    if result < 0 or result >= (1 << bits):
        raise EdsDecodeError(
            f"Node id formula {value!r} with node id {node_id} does not fit in {bits} bits")
    return result


def parse_integer(value: Optional[str], bits: int = 32,
                  node_id: Optional[int] = None) -> int:
    """
    Decode an unsigned integer literal.

    Args:
        value: Literal text (surrounding whitespace is ignored)
        bits: Target width; 8, 16 or 32
        node_id: Node id used to evaluate $NODEID formulas

    Returns:
        Decoded integer

    Raises:
        EdsDecodeError: malformed digits, overflow, or a $NODEID formula
            that is malformed or has no node id to evaluate against
    """
    value = (value or '').strip()
    if not value:
        return 0

    if value.upper().startswith(NODE_ID_TOKEN):
        return _evaluate_node_id(value, bits, node_id)

    return _parse_plain(value, bits, value)


def parse_byte(value: Optional[str], node_id: Optional[int] = None) -> int:
    return parse_integer(value, 8, node_id)


def parse_uint16(value: Optional[str], node_id: Optional[int] = None) -> int:
    return parse_integer(value, 16, node_id)


def parse_uint32(value: Optional[str], node_id: Optional[int] = None) -> int:
    return parse_integer(value, 32, node_id)


def is_node_id_formula(value: Optional[str]) -> bool:
    """True when the literal is relative to the node id."""
    return (value or '').strip().upper().startswith(NODE_ID_TOKEN)


def parse_boolean(value: Optional[str]) -> bool:
    """Decode a boolean; never fails."""
    value = (value or '').strip()
    return value == '1' or value.lower() in ('true', 'yes')


def parse_access_type(value: Optional[str]) -> AccessType:
    """Decode an access token; unknown tokens are read-only."""
    return _ACCESS_TOKENS.get((value or '').strip().lower(), AccessType.READ_ONLY)


def access_type_to_string(access_type: AccessType) -> str:
    return access_type.value if isinstance(access_type, AccessType) else 'ro'


def format_integer(value: int, use_hex: bool = True) -> str:
    """Format an integer for output, hexadecimal with 0x prefix by default."""
    if use_hex:
        return f"0x{value:X}"
    return str(value)


def format_boolean(value: bool) -> str:
    return '1' if value else '0'
