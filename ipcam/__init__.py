"""
IPCam

Turns a workstation's camera and microphone into an RTSP endpoint on the LAN by
supervising a bundled ffmpeg (capture and encode) and mediamtx (relay), with
automatic producer restart and cleanup of stale processes.
"""

__version__ = "1.0.0"
__license__ = "MIT"

from .process_manager import StreamManager
from .stream_state import NO_AUDIO, SessionState, StreamStatus

__all__ = ["StreamManager", "SessionState", "StreamStatus", "NO_AUDIO"]
