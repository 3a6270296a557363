from storeaudio.models.organization import Organization
from storeaudio.models.playlist import Playlist, Track
from storeaudio.models.store import Store
from storeaudio.models.announcement import Announcement, CartwallItem
from storeaudio.models.schedule import ScheduleRule
from storeaudio.models.playback_log import PlaybackLog

__all__ = [
    "Announcement",
    "CartwallItem",
    "Organization",
    "PlaybackLog",
    "Playlist",
    "ScheduleRule",
    "Store",
    "Track",
]
