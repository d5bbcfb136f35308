"""Observable session state.

All writes go through StreamState.transition(), which swaps in a new
immutable StreamStatus and notifies subscribers while still holding the
lock, so readers never see a half-applied change and subscribers see
transitions in the order they happened.
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum

NO_AUDIO = -1


class SessionState(str, Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    STREAMING = "streaming"
    RECONNECTING = "reconnecting"
    ERROR = "error"

    def __str__(self):
        return self.value

    @classmethod
    def active_states(cls):
        """States in which a session owns child processes"""
        return [cls.STARTING, cls.STREAMING, cls.RECONNECTING]


STATUS_MESSAGES = {
    SessionState.STOPPED: "Stopped",
    SessionState.STARTING: "Starting...",
    SessionState.STREAMING: "Streaming",
    SessionState.RECONNECTING: "Reconnecting...",
}


@dataclass(frozen=True)
class StreamStatus:
    state: SessionState = SessionState.STOPPED
    status_message: str = "Stopped"
    rtsp_url: str = ""

    @property
    def is_streaming(self):
        return self.state in (SessionState.STREAMING, SessionState.RECONNECTING)

    def to_dict(self):
        return {
            'state': str(self.state),
            'is_streaming': self.is_streaming,
            'rtsp_url': self.rtsp_url,
            'status_message': self.status_message,
        }


class StreamState:
    def __init__(self):
        self._lock = threading.RLock()
        self._status = StreamStatus()
        self._subscribers = []

    @property
    def status(self):
        with self._lock:
            return self._status

    def subscribe(self, callback):
        """Call `callback(status)` after every transition. Returns an unsubscribe function."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe():
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def transition(self, state, rtsp_url=None, error=None):
        """Move to `state`; the URL is kept only while the stream is up"""
        with self._lock:
            if state == SessionState.ERROR:
                message = f"Error: {error}"
            else:
                message = STATUS_MESSAGES[state]

            if state in (SessionState.STREAMING, SessionState.RECONNECTING):
                url = self._status.rtsp_url if rtsp_url is None else rtsp_url
            else:
                url = ""

            self._status = StreamStatus(state=state, status_message=message, rtsp_url=url)
            logging.info(f"Stream state -> {state} ({message})")

            for callback in list(self._subscribers):
                try:
                    callback(self._status)
                except Exception:
                    logging.exception("Stream state subscriber failed")

            return self._status
