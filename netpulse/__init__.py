"""
NetPulse: trend, anomaly and forecast analytics for network telemetry.
"""

__version__ = "0.1.0"
