from .orchestrator import SyncOrchestrator  # noqa: F401
from .records import PrimaryArtistPolicy, SyncRun, TrackRecord, UpsertResult  # noqa: F401
from .runner import BackgroundSyncRunner  # noqa: F401
