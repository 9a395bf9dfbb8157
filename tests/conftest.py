"""Synthetic Neuralynx .nev files for the test suite.

Records are written with the same structured dtype the reader uses, behind a
NUL-padded 16 kB text header like the one Cheetah writes.
"""

import numpy as np
import pytest

from nlxev.nev import HEADER_SIZE, nev_dtype


DEFAULT_HEADER_LINES = [
    "######## Neuralynx Data File Header",
    "## File Name C:\\CheetahData\\Events.nev",
    "## Time Opened (m/d/y): 4/12/2010  (h:m:s.ms) 14:02:11.546",
    "-CheetahRev 5.4.0",
    "-FileType Event",
    "-RecordSize 184",
    '-OriginalFileName "C:\\CheetahData\\Events.nev"',
]


def build_header(lines=None):
    text = "\r\n".join(DEFAULT_HEADER_LINES if lines is None else lines)
    raw = text.encode("latin-1")
    assert len(raw) <= HEADER_SIZE
    return raw + b"\x00" * (HEADER_SIZE - len(raw))


def write_nev(path, timestamps, ttl_codes, strings=None, header_lines=None,
              trailing=b""):
    """Write a minimal .nev file and return its path."""
    n = len(timestamps)
    records = np.zeros(n, dtype=nev_dtype)
    records["data_size"] = 2
    records["timestamp"] = np.asarray(timestamps, dtype=np.uint64)
    # Codes may be given signed (as Cheetah's int16 field) or unsigned
    records["ttl_input"] = np.asarray(ttl_codes, dtype=np.int64).astype(np.uint16)
    if strings is None:
        strings = [
            f"TTL Input on AcqSystem1_0 board 0 port 0 value (0x{int(c) & 0xFFFF:04X})."
            for c in ttl_codes
        ]
    records["event_string"] = [s.encode("latin-1") for s in strings]

    with open(path, "wb") as f:
        f.write(build_header(header_lines))
        f.write(records.tobytes())
        f.write(trailing)
    return path


@pytest.fixture
def make_nev(tmp_path):
    """Factory fixture: ``make_nev(timestamps, ttl_codes, **kwargs) -> Path``."""
    def _make(timestamps, ttl_codes, name="Events.nev", **kwargs):
        return write_nev(tmp_path / name, timestamps, ttl_codes, **kwargs)
    return _make


@pytest.fixture
def laser_nev(make_nev):
    """Four events where TTL 5 is high at events 1 and 2, TTL 0 at event 0.

    ticks:   0      100    250    400
    TTL 5:   low    high   high   low
    TTL 0:   high   low    low    low
    """
    return make_nev(
        [0, 100, 250, 400],
        [0x0001, 0x0020, 0x0020, 0x0000],
    )
