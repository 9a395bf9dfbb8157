"""Turning per-event TTL states into pulse start/end times.

Every event records the state of all digital inputs *from* its timestamp
until the next event's timestamp, so each event row is a segment
``[times[i], times[i + 1]]``.  A pulse on a channel is a maximal run of
consecutive segments in which that channel is high.
"""

import logging

import numpy as np

logger = logging.getLogger(__name__)


def collapse_runs(index, starts, ends=None):
    """Collapse runs of consecutive positions into ``(start, end)`` rows.

    Parameters
    ----------
    index : array_like
        Either a boolean mask with the same length as *starts*, or integer
        positions into *starts* (sorted and de-duplicated here).
    starts : array_like
        Value reported for the first position of each run.
    ends : array_like, optional
        Value reported for the last position of each run.  Defaults to
        *starts*.

    Returns
    -------
    ndarray, shape (k, 2)
        One row per maximal run of consecutive integers in *index*:
        ``(starts[first], ends[last])``.  Positions that differ by more
        than one always start a new run, whatever the values in between.
    """
    starts = np.asarray(starts)
    ends = starts if ends is None else np.asarray(ends)
    if len(starts) != len(ends):
        raise ValueError("starts and ends must have the same length")
    out_dtype = np.result_type(starts, ends)

    index = np.asarray(index)
    if index.dtype == bool:
        if index.shape != starts.shape:
            raise ValueError(
                f"mask has shape {index.shape}, expected {starts.shape}"
            )
        positions = np.flatnonzero(index)
    elif index.size == 0:
        positions = np.array([], dtype=np.int64)
    else:
        if index.dtype.kind not in "iuf":
            raise ValueError(f"positions must be integers, got dtype {index.dtype}")
        if index.dtype.kind == "f" and not np.all(index == np.round(index)):
            raise ValueError(f"positions must be integers, got {index!r}")
        positions = np.unique(index.astype(np.int64))
        if positions[0] < 0 or positions[-1] >= len(starts):
            raise ValueError(
                f"positions must lie in [0, {len(starts)}), got "
                f"[{positions[0]}, {positions[-1]}]"
            )

    if positions.size == 0:
        return np.empty((0, 2), dtype=out_dtype)

    gaps = np.flatnonzero(np.diff(positions) > 1)
    first = positions[np.concatenate(([0], gaps + 1))]
    last = positions[np.concatenate((gaps, [positions.size - 1]))]

    return np.column_stack((starts[first], ends[last])).astype(out_dtype)


def segment_bounds(times):
    """Return ``(starts, ends)`` of the segment each event opens.

    Each segment ends at the next event.  Nothing is known after the last
    event, so its segment ends where it starts (zero length).
    """
    starts = np.asarray(times)
    if starts.size == 0:
        return starts, starts.copy()
    ends = np.concatenate((starts[1:], starts[-1:]))
    return starts, ends


def find_pulses(ttls, times):
    """Find high-state pulses for every channel of a TTL state matrix.

    Parameters
    ----------
    ttls : ndarray of bool, shape (m, n_channels)
        State of each channel right after each event.
    times : ndarray, shape (m,)
        Event timestamps.

    Returns
    -------
    list of ndarray
        One ``(k, 2)`` array of ``[start, end]`` rows per channel, in time
        order.  Channels that are never high get an empty ``(0, 2)`` array.
    """
    ttls = np.asarray(ttls, dtype=bool)
    starts, ends = segment_bounds(times)
    if ttls.ndim != 2 or ttls.shape[0] != len(starts):
        raise ValueError(
            f"ttls must have shape ({len(starts)}, n_channels), got {ttls.shape}"
        )

    pulses = []
    for ch in range(ttls.shape[1]):
        state = ttls[:, ch]
        # Most inputs are unused in a typical recording
        if not state.any():
            pulses.append(np.empty((0, 2), dtype=starts.dtype))
            continue
        pulses.append(collapse_runs(state, starts, ends))
        logger.debug("TTL channel %d: %d pulse(s)", ch, len(pulses[-1]))

    return pulses
