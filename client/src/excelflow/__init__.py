"""Client for submitting, tracking and collecting remote file-processing runs."""

__version__ = "0.1.0"
