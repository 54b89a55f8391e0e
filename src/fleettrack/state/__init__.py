"""In-memory state owned by the tracker.

Nothing here is a module-level global: each object is constructed once by
:class:`fleettrack.tracker.FleetTracker` and shared by reference.
"""

from fleettrack.state.latest import LatestLocationsCache
from fleettrack.state.metadata import MetadataCache
from fleettrack.state.poll_log import PollResultLog

__all__ = ["LatestLocationsCache", "MetadataCache", "PollResultLog"]
