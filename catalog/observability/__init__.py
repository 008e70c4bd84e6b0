# noqa: D104 - package initialization
from .logging import JsonFormatter, RequestContextFilter, configure_structured_logging  # noqa: F401
from .metrics import (  # noqa: F401
    metrics_blueprint,
    record_artist_failure,
    record_remote_retry,
    record_sync_run,
    record_tracks_saved,
)
