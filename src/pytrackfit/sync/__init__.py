"""Offline sync layer: queue, endpoints, reachability probe and synchronizer.

Capture code only enqueues; everything that touches the network lives
here and runs from the synchronizer's cycle.
"""

from pytrackfit.sync.backoff import Backoff
from pytrackfit.sync.endpoints import HttpEndpoint, RemoteEndpoint
from pytrackfit.sync.probe import NetworkProbe
from pytrackfit.sync.queue import SyncQueue
from pytrackfit.sync.synchronizer import Synchronizer

__all__ = ["Backoff", "HttpEndpoint", "NetworkProbe", "RemoteEndpoint", "SyncQueue", "Synchronizer"]
