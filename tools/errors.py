#!/usr/bin/env python3
"""
errors.py - Exception types shared by the EDS/DCF readers and writers

Two failure families exist:

    EdsDecodeError  - the input text cannot be faithfully represented
                      (malformed literal, stray key/value line, oversized
                      input, missing [DeviceInfo], ...). Subclasses
                      ValueError so callers that only care about "bad
                      input" can keep catching ValueError.
    DcfWriteError   - rendering or writing the output failed. Carries the
                      target and, when known, the section being written.
"""

from typing import Optional


class EdsDecodeError(ValueError):
    """Raised when EDS/DCF text cannot be decoded."""

    def __init__(self, message: str, line_number: Optional[int] = None,
                 section_name: Optional[str] = None):
        super().__init__(message)
        self.line_number = line_number
        self.section_name = section_name

    def __str__(self) -> str:
        message = super().__str__()
        if self.section_name is not None and f"[{self.section_name}]" not in message:
            message = f"{message} (in section [{self.section_name}])"
        return message


class DcfWriteError(Exception):
    """Raised when a document cannot be encoded or written."""

    def __init__(self, message: str, target: Optional[str] = None,
                 section_name: Optional[str] = None):
        super().__init__(message)
        self.target = target
        self.section_name = section_name
