"""Shared test fixtures for hexstruct."""

import struct
from dataclasses import dataclass

import pytest


HEX_SPEC = """\
Data {
    _: "48 45 58",
    a: [0x01, _],
    b: buf @ "AABB ____" => int.from_bytes(buf, "little"),
}
"""


@dataclass
class Data:
    a: bytes
    b: int


class ChunkedReader:
    """Binary stream that hands out at most one byte per ``readinto`` call."""

    def __init__(self, data: bytes):
        self.data = data
        self.pos = 0

    def readinto(self, view) -> int:
        n = min(1, len(view), len(self.data) - self.pos)
        view[:n] = self.data[self.pos:self.pos + n]
        self.pos += n
        return n


class ReadOnlyReader:
    """Binary stream exposing only ``read``."""

    def __init__(self, data: bytes):
        self.data = data
        self.pos = 0

    def read(self, n: int) -> bytes:
        chunk = self.data[self.pos:self.pos + n]
        self.pos += len(chunk)
        return chunk


class FailingReader:
    """Binary stream whose device has gone away."""

    def __init__(self, error: OSError):
        self.error = error

    def readinto(self, view) -> int:
        raise self.error


@pytest.fixture
def tmp_dir(tmp_path):
    """Provide a temporary directory Path."""
    return tmp_path


@pytest.fixture
def hex_namespace():
    return {"Data": Data}


@pytest.fixture
def hex_record_bytes():
    """Input for HEX_SPEC: magic, a = [01, 02], b = 0xDDCCBBAA."""
    return bytes.fromhex("48 45 58 01 02 AA BB CC DD")


@pytest.fixture
def surfer6_bytes():
    """Build a minimal Surfer 6 binary grid (3x2)."""
    nx, ny = 3, 2
    xlo, xhi = 0.0, 10.0
    ylo, yhi = 0.0, 5.0
    zlo, zhi = -1.0, 1.0
    header = b"DSBB" + struct.pack("<HH6d", nx, ny, xlo, xhi, ylo, yhi, zlo, zhi)
    values = [0.1, 0.2, 0.3, 0.4, 0.5, 0.6]
    payload = struct.pack(f"<{len(values)}f", *values)
    return header + payload


@pytest.fixture
def surfer6_file(tmp_dir, surfer6_bytes):
    """Write a Surfer 6 grid to a temp file and return its path."""
    p = tmp_dir / "sample.grd"
    p.write_bytes(surfer6_bytes)
    return p


@pytest.fixture
def png_bytes():
    """PNG signature and IHDR chunk for a 640x480 8-bit RGBA image."""
    ihdr = struct.pack(">IIBBBBB", 640, 480, 8, 6, 0, 0, 0)
    return (
        bytes.fromhex("89504E470D0A1A0A")
        + struct.pack(">I", len(ihdr)) + b"IHDR" + ihdr
        + b"\x00\x00\x00\x00"
    )


@pytest.fixture
def png_file(tmp_dir, png_bytes):
    p = tmp_dir / "image.png"
    p.write_bytes(png_bytes)
    return p
