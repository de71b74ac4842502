"""Input/output of the TOF PID processing."""

from .factories import reader_factory, writer_factory
