"""
Pytest fixtures for the strings table tests.
"""

import sys
import struct
import pytest
from pathlib import Path

# Add project root
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


def build_strings_file(directory, data, count=None, data_size=None):
    """Hand-build strings file bytes from (id, offset) pairs and a raw data block."""
    count = len(directory) if count is None else count
    data_size = len(data) if data_size is None else data_size
    content = struct.pack("<II", count, data_size)
    for string_id, offset in directory:
        content += struct.pack("<II", string_id, offset)
    return content + data


def length_prefixed(payload):
    return struct.pack("<I", len(payload)) + payload + b"\x00"


@pytest.fixture
def write_strings_file(tmp_path):
    """Write hand-built bytes to tmp_path/<name> and return the path as a string."""
    def _write(name, directory, data, **kwargs):
        path = tmp_path / name
        path.write_bytes(build_strings_file(directory, data, **kwargs))
        return str(path)
    return _write
