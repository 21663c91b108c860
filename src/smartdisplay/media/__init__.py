"""Media collaborators: currently-playing status and uploaded images"""

from .base import MediaStatusSource
from .images import ImageStore
from .poller import MediaPoller
from .spotify import SpotifyMediaSource

__all__ = ["MediaStatusSource", "ImageStore", "MediaPoller", "SpotifyMediaSource"]
