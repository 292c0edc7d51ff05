"""
Channel Health Monitor
Probes externally hosted IPTV channels on a schedule and tracks their
liveness with failure hysteresis.
"""

__version__ = "0.1.0"
__description__ = "Liveness monitoring for externally hosted IPTV channels"
