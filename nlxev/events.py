"""Loading Neuralynx event logs into per-channel TTL states and pulses."""

import json as _json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

import numpy as np

from .errors import InvalidInputError
from .intervals import find_pulses as _find_pulses
from .nev import parse_header, read_nev
from .ttl import N_TTL_CHANNELS, expand_ttl_bitfield

logger = logging.getLogger(__name__)

TIME_UNITS = ("seconds", "microseconds")
DEFAULT_TIME_UNITS = "seconds"

# Native .nev timestamps are microseconds
_TICKS_PER_SECOND = 1e6


# Fields are kept in alphabetical order.
@dataclass(frozen=True, eq=False)
class EventLog:
    """TTL events from one ``.nev`` file.

    Attributes
    ----------
    info : dict
        ``raw_header``, parsed ``header`` and the ``load_args`` used.
    pulses : list of ndarray or None
        Per channel, a ``(k, 2)`` array of ``[start, end]`` pulse times in
        ``time_units``.  ``None`` when pulse finding was skipped.
    strings : list of str
        Text attached to each event.
    time_units : str
        ``"seconds"`` (float64 times) or ``"microseconds"`` (int64 times).
    times : ndarray, shape (m,)
        Event times.
    ttls : ndarray of bool, shape (m, 16)
        State of each digital input right after each event.
    """

    info: dict
    pulses: Optional[List[np.ndarray]]
    strings: List[str]
    time_units: str
    times: np.ndarray
    ttls: np.ndarray

    @property
    def n_events(self) -> int:
        return len(self.times)

    def channel_pulses(self, channel: int) -> np.ndarray:
        """Pulses of one 0-based TTL channel."""
        if self.pulses is None:
            raise RuntimeError("pulses were not computed (find_pulses=False)")
        if not 0 <= channel < len(self.pulses):
            raise IndexError(
                f"channel must be in [0, {len(self.pulses)}), got {channel}"
            )
        return self.pulses[channel]

    def save(self, path: Union[str, Path]) -> Path:
        """Save to an NPZ file and return its path.

        A missing ``.npz`` suffix is appended, as ``np.savez`` does.
        """
        path = Path(path)
        if path.suffix != ".npz":
            path = path.with_name(path.name + ".npz")
        arrays = dict(
            times=self.times,
            ttls=self.ttls,
            strings=np.array(self.strings, dtype=str),
            time_units=np.array(self.time_units),
        )
        if self.pulses is not None:
            for ch, p in enumerate(self.pulses):
                arrays[f"pulses_{ch:02d}"] = p
        try:
            arrays["_info"] = np.array(_json.dumps(self.info))
        except TypeError as e:
            raise TypeError(f"info values must be JSON-serializable: {e}") from e
        np.savez(path, **arrays)
        logger.info("Saved event log to %s", path)
        return path

    @classmethod
    def load(cls, path: Union[str, Path]) -> "EventLog":
        """Load from an NPZ file written by :meth:`save`."""
        path = Path(path)
        with np.load(path) as data:
            pulse_keys = sorted(k for k in data.files if k.startswith("pulses_"))
            pulses = [data[k] for k in pulse_keys] if pulse_keys else None
            return cls(
                info=_json.loads(str(data["_info"])),
                pulses=pulses,
                strings=[str(s) for s in data["strings"]],
                time_units=str(data["time_units"]),
                times=data["times"],
                ttls=data["ttls"],
            )

    def __repr__(self):
        lines = [f"EventLog: {self.n_events} events ({self.time_units})"]
        if self.n_events:
            lines.append(f"  times=[{self.times[0]}..{self.times[-1]}]")
        if self.pulses is not None:
            active = [
                f"{ch}:{len(p)}" for ch, p in enumerate(self.pulses) if len(p)
            ]
            lines.append(f"  pulses per channel: {', '.join(active) or 'none'}")
        return "\n".join(lines)


def _check_time_units(time_units):
    if time_units not in TIME_UNITS:
        raise InvalidInputError(
            f"time_units must be one of {TIME_UNITS}, got {time_units!r}"
        )


def _scale_times(ticks, time_units):
    if time_units == "seconds":
        return np.asarray(ticks) / _TICKS_PER_SECOND
    return ticks


def build_event_log(
    timestamps,
    ttl_codes,
    strings: Optional[List[str]] = None,
    raw_header: str = "",
    time_units: str = DEFAULT_TIME_UNITS,
    find_pulses: bool = True,
    filename: Optional[str] = None,
) -> EventLog:
    """Assemble an :class:`EventLog` from decoded event arrays.

    Parameters
    ----------
    timestamps : array_like of int
        Event timestamps in microsecond ticks, non-decreasing.
    ttl_codes : array_like of int
        16-bit TTL bitfield for each event.
    strings : list of str, optional
        Text attached to each event.  Defaults to empty strings.
    raw_header : str
        File header text, stored unmodified in ``info``.
    time_units : {"seconds", "microseconds"}
        Units of every output time.
    find_pulses : bool
        If False, skip pulse detection and leave ``pulses`` as None.
    filename : str, optional
        Recorded in ``info["load_args"]``.

    Raises
    ------
    InvalidInputError
        Unknown *time_units*, mismatched lengths or decreasing timestamps.
    MalformedBitfieldError
        A TTL code that is not an unsigned 16-bit value.
    """
    _check_time_units(time_units)

    ticks = np.asarray(timestamps)
    if ticks.size == 0:
        ticks = ticks.astype(np.int64)
    elif ticks.dtype.kind in "iu":
        ticks = ticks.astype(np.int64)
    if ticks.ndim != 1:
        raise InvalidInputError(
            f"timestamps must be one-dimensional, got shape {ticks.shape}"
        )
    ttl_codes = np.asarray(ttl_codes)
    if ttl_codes.ndim != 1:
        raise InvalidInputError(
            f"TTL codes must be one-dimensional, got shape {ttl_codes.shape}"
        )
    if len(ticks) != len(ttl_codes):
        raise InvalidInputError(
            f"got {len(ticks)} timestamps but {len(ttl_codes)} TTL codes"
        )
    if strings is None:
        strings = [""] * len(ticks)
    elif len(strings) != len(ticks):
        raise InvalidInputError(
            f"got {len(ticks)} timestamps but {len(strings)} event strings"
        )
    if np.any(np.diff(ticks) < 0):
        i = int(np.flatnonzero(np.diff(ticks) < 0)[0]) + 1
        raise InvalidInputError(f"timestamps decrease at event {i}")

    ttls = expand_ttl_bitfield(ttl_codes)

    pulses = None
    if find_pulses:
        pulses = [
            _scale_times(p, time_units) for p in _find_pulses(ttls, ticks)
        ]

    info = {
        "raw_header": raw_header,
        "header": parse_header(raw_header),
        "load_args": {
            "filename": filename,
            "time_units": time_units,
            "find_pulses": bool(find_pulses),
        },
    }

    return EventLog(
        info=info,
        pulses=pulses,
        strings=list(strings),
        time_units=time_units,
        times=_scale_times(ticks, time_units),
        ttls=ttls,
    )


def load_events(
    path: Union[str, Path],
    time_units: str = DEFAULT_TIME_UNITS,
    find_pulses: bool = True,
) -> EventLog:
    """Load TTL events and pulses from a Neuralynx ``.nev`` file.

    Parameters
    ----------
    path : str or Path
        Path to the ``.nev`` file.
    time_units : {"seconds", "microseconds"}
        Units of every output time (default ``"seconds"``).
    find_pulses : bool
        Build per-channel pulse start/end times (default True).

    Returns
    -------
    EventLog

    Examples
    --------
    >>> ev = load_events("Events.nev")          # doctest: +SKIP
    >>> laser = ev.channel_pulses(14)            # doctest: +SKIP
    """
    # Validate before touching the file
    _check_time_units(time_units)

    path = Path(path).expanduser()
    records = read_nev(path)
    ev = build_event_log(
        records.timestamps,
        records.ttl_codes,
        strings=records.strings,
        raw_header=records.raw_header,
        time_units=time_units,
        find_pulses=find_pulses,
        filename=str(path),
    )
    if ev.pulses is not None:
        logger.info(
            "Loaded %d events from %s; %d of %d TTL channels carry pulses",
            ev.n_events, path,
            sum(1 for p in ev.pulses if len(p)), N_TTL_CHANNELS,
        )
    else:
        logger.info("Loaded %d events from %s", ev.n_events, path)
    return ev
