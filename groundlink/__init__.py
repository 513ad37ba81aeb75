"""Ground control station core: vehicle tracking, MAVLink over UDP, competition server telemetry and instrument layout."""

__version__ = "0.1.0"