"""Neuralynx ``.nev`` event file reader.

A ``.nev`` file is a 16 kB latin-1 text header followed by fixed-size
184-byte event records.  Only the fields needed downstream are exposed:
timestamps, the TTL bitfield, and the per-event text.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Union

import numpy as np

from .errors import InvalidInputError

logger = logging.getLogger(__name__)

HEADER_SIZE = 2 ** 14
_HEADER_MAGIC = "########"

nev_dtype = np.dtype([
    ("reserved", "<i2"),
    ("system_id", "<i2"),
    ("data_size", "<i2"),
    ("timestamp", "<u8"),
    ("event_id", "<i2"),
    # 16-bit TTL bitfield; read unsigned so bit 15 is not sign-extended
    ("ttl_input", "<u2"),
    ("crc_check", "<i2"),
    ("dummy1", "<i2"),
    ("dummy2", "<i2"),
    ("extra", "<i4", (8,)),
    ("event_string", "S128"),
])

# "-Key value" property lines, and "## ..." comment lines
_PROPERTY_RE = re.compile(r"^-(?P<key>\S+)(?:\s+(?P<value>.*))?$")
_COMMENT_RE = re.compile(r"^##(?!#)\s*(?P<text>.*)$")


@dataclass
class NevRecords:
    """Parallel per-event arrays decoded from one ``.nev`` file."""
    timestamps: np.ndarray
    ttl_codes: np.ndarray
    strings: list
    raw_header: str

    def __len__(self):
        return len(self.timestamps)


def read_raw_header(path: Union[str, Path]) -> str:
    """Return the text header of a Neuralynx file with NUL padding removed."""
    path = Path(path)
    try:
        with path.open("rb") as f:
            raw = f.read(HEADER_SIZE)
    except OSError as e:
        raise InvalidInputError(f"Cannot read {path}: {e}") from e
    if len(raw) < HEADER_SIZE:
        raise InvalidInputError(
            f"{path} is too short ({len(raw)} bytes) to hold a Neuralynx header"
        )
    text = raw.strip(b"\x00").decode("latin-1")
    if not text.startswith(_HEADER_MAGIC):
        raise InvalidInputError(
            f"{path} is not a Neuralynx file: header must start with "
            f"{_HEADER_MAGIC!r}"
        )
    return text


def parse_header(raw_header: str) -> dict:
    """Parse a Neuralynx text header into a dict.

    ``-Key value`` lines become ``{"Key": "value"}`` (enclosing double quotes
    removed, a bare ``-Key`` maps to ``""``).  ``## ...`` lines are kept, in
    order, under ``"comments"``.
    """
    header = {}
    comments = []
    for line in raw_header.splitlines():
        line = line.strip()
        if not line:
            continue
        m = _COMMENT_RE.match(line)
        if m:
            if m.group("text"):
                comments.append(m.group("text"))
            continue
        m = _PROPERTY_RE.match(line)
        if m:
            value = (m.group("value") or "").strip()
            if len(value) >= 2 and value[0] == value[-1] == '"':
                value = value[1:-1]
            header[m.group("key")] = value
    header["comments"] = comments
    return header


def read_nev(path: Union[str, Path]) -> NevRecords:
    """Decode the event records of a Neuralynx ``.nev`` file.

    Parameters
    ----------
    path : str or Path
        Path to the ``.nev`` file.  A leading ``~`` is expanded.

    Returns
    -------
    NevRecords
        ``timestamps`` (int64 microseconds), ``ttl_codes`` (int64 bitfields),
        ``strings`` (decoded event text) and ``raw_header``.

    Raises
    ------
    InvalidInputError
        If the file does not exist, cannot be read, or does not carry a
        Neuralynx header.
    """
    path = Path(path).expanduser()
    if not path.is_file():
        raise InvalidInputError(f"No .nev file found at {path}")

    raw_header = read_raw_header(path)

    n_bytes = path.stat().st_size - HEADER_SIZE
    n_records, leftover = divmod(n_bytes, nev_dtype.itemsize)
    if leftover:
        logger.warning(
            "%s: ignoring %d trailing byte(s) of an incomplete event record",
            path, leftover,
        )

    if n_records == 0:
        data = np.zeros((0,), dtype=nev_dtype)
    else:
        try:
            data = np.memmap(path, dtype=nev_dtype, mode="r",
                             offset=HEADER_SIZE, shape=(n_records,))
        except OSError as e:
            raise InvalidInputError(f"Cannot read {path}: {e}") from e

    strings = [
        s.split(b"\x00", 1)[0].decode("latin-1")
        for s in data["event_string"]
    ]
    records = NevRecords(
        timestamps=np.array(data["timestamp"], dtype=np.int64),
        ttl_codes=np.array(data["ttl_input"], dtype=np.int64),
        strings=strings,
        raw_header=raw_header,
    )
    del data

    logger.info("Read %d event record(s) from %s", len(records), path)
    return records
