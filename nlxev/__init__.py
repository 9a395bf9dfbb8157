"""nlxev: TTL events and pulses from Neuralynx .nev event logs."""

__version__ = "0.1.0"

from .errors import InvalidInputError, MalformedBitfieldError
from .events import EventLog, build_event_log, load_events, TIME_UNITS
from .intervals import collapse_runs, find_pulses, segment_bounds
from .nev import NevRecords, parse_header, read_nev
from .ttl import N_TTL_CHANNELS, expand_ttl_bitfield
