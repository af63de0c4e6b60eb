"""
fallguard - fall and tremor detection from streaming acceleration.

This package contains the detection pipeline that turns a ~50 Hz stream of
3-axis acceleration samples into two emergency events:

- FALL: free-fall, then impact, then the person staying still
- TREMOR: sustained rhythmic oscillation

Around the pipeline it provides a typed event bus, a detection service and
an offline replay command for recorded traces.
"""

__version__ = "1.0.0"
