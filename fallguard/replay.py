#!/usr/bin/env python3
"""
Replay a recorded sensor trace through the detection pipeline.

The trace is a CSV file with one sample per row::

    t_ms,kind,x,y,z
    0,raw,0.02,-0.11,9.79
    20,raw,0.05,-0.09,9.83

``kind`` is one of raw, gravity or linear. A header row is optional. Every
emitted event is printed as ``<t_ms>\\t<trigger>\\t<details as JSON>``.
Thresholds come from the usual FALLGUARD_* environment configuration.
"""

import argparse
import csv
import json
import sys
from typing import Iterable, Iterator, List, Optional, TextIO

from fallguard.core.config import AlertConfig, LogLevel, get_config
from fallguard.detection import DetectionPipeline, EmergencyEvent, Sample, SampleKind
from fallguard.main import setup_logging

class TraceFormatError(ValueError):
    """A trace row could not be parsed into a sample."""

def read_trace(rows: Iterable[List[str]]) -> Iterator[Sample]:
    """
    Parse CSV rows into samples.

    Raises:
        TraceFormatError: On a row with the wrong field count, an unknown kind
            or a non-numeric value
    """
    for line_no, row in enumerate(rows, start=1):
        if not row or row[0].startswith("#"):
            continue
        if line_no == 1 and row[0].strip() == "t_ms":
            continue
        if len(row) != 5:
            raise TraceFormatError(f"line {line_no}: expected 5 fields, got {len(row)}")
        t_ms, kind, x, y, z = (field.strip() for field in row)
        try:
            yield Sample(
                kind=SampleKind(kind.lower()),
                ax=float(x),
                ay=float(y),
                az=float(z),
                t_ms=int(t_ms),
            )
        except ValueError as e:
            raise TraceFormatError(f"line {line_no}: {e}") from e

def replay(samples: Iterable[Sample], pipeline: DetectionPipeline) -> List[EmergencyEvent]:
    """Feed every sample to the pipeline and collect what it emits."""
    events: List[EmergencyEvent] = []
    for sample in samples:
        events.extend(pipeline.process(sample))
    return events

def format_event(event: EmergencyEvent) -> str:
    return f"{event.timestamp_ms}\t{event.trigger.value}\t{json.dumps(event.details, sort_keys=True)}"

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Replay a sensor trace through the fall and tremor pipeline')
    parser.add_argument('trace', type=argparse.FileType('r'), help='CSV trace (t_ms,kind,x,y,z); - for stdin')
    parser.add_argument('--linear-sensor', action='store_true',
                        help='Trace carries linear samples from a dedicated sensor')
    parser.add_argument('--cooldown-ms', type=int, default=None,
                        help='Override the alert cooldown')
    parser.add_argument('--log-level', default='WARNING', choices=[level.value for level in LogLevel])
    return parser

def main(argv: Optional[List[str]] = None, out: TextIO = sys.stdout) -> int:
    args = build_parser().parse_args(argv)
    # stdout carries the event lines
    setup_logging(args.log_level, stream=sys.stderr)

    config = get_config()
    if args.cooldown_ms is not None:
        config.alert = AlertConfig(cooldown_ms=args.cooldown_ms)
    pipeline = DetectionPipeline(config, dedicated_linear=args.linear_sensor or None)

    try:
        with args.trace as fh:
            events = replay(read_trace(csv.reader(fh)), pipeline)
    except TraceFormatError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    for event in events:
        print(format_event(event), file=out)
    print(f"# {pipeline.processed_samples} samples, {pipeline.rejected_samples} rejected, "
          f"{len(events)} events", file=out)
    return 0

if __name__ == "__main__":
    sys.exit(main())
