# Services module
from survey_analytics.services.progress_broadcaster import broadcaster, ProgressBroadcaster

__all__ = [
    "broadcaster",
    "ProgressBroadcaster",
]
