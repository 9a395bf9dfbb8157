"""Command-line entry point: summarize TTL pulses in a ``.nev`` file."""

import argparse
import logging
import sys

from .errors import InvalidInputError, MalformedBitfieldError
from .events import DEFAULT_TIME_UNITS, TIME_UNITS, load_events

logger = logging.getLogger(__name__)


def build_parser():
    parser = argparse.ArgumentParser(
        prog="nlxev",
        description="Extract per-channel TTL pulses from a Neuralynx .nev file",
    )
    parser.add_argument(
        "nev_file",
        help="Path to input .nev file"
    )
    parser.add_argument(
        "-u", "--time-units",
        choices=TIME_UNITS,
        default=DEFAULT_TIME_UNITS,
        help=f"Units of output times (default: {DEFAULT_TIME_UNITS})"
    )
    parser.add_argument(
        "--no-pulses",
        action="store_true",
        help="Skip per-channel pulse detection"
    )
    parser.add_argument(
        "-o", "--output",
        help="Save the result to this .npz file"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging"
    )
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        ev = load_events(
            args.nev_file,
            time_units=args.time_units,
            find_pulses=not args.no_pulses,
        )
    except (InvalidInputError, MalformedBitfieldError) as e:
        logger.error("%s", e)
        return 1

    print(f"{ev.n_events} events in {args.nev_file}")
    if ev.pulses is not None:
        for ch, p in enumerate(ev.pulses):
            if len(p) == 0:
                continue
            print(f"  TTL {ch:2d}: {len(p)} pulse(s), "
                  f"first at {p[0, 0]} {ev.time_units}")

    if args.output:
        ev.save(args.output)

    return 0


if __name__ == "__main__":
    sys.exit(main())
