from .aggregates import artist_metrics, format_duration, global_metrics  # noqa: F401
from .maintenance import LabelPruner, LabelVerdict  # noqa: F401
from .repository import TrackRepository  # noqa: F401
