"""Browser module exports."""

from .network import NetworkActivityMonitor
from .session import BrowserSession, BrowserSessionManager
from .stability import StabilityProber

__all__ = ["BrowserSession", "BrowserSessionManager", "NetworkActivityMonitor", "StabilityProber"]
