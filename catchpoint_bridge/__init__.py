"""Bridge between Catchpoint alert pushes, NSCA and tm-health-check style snapshots."""

__version__ = "0.1.0"
