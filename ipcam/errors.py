class StreamError(Exception):
    """Base class for stream supervision errors"""


class StagingError(StreamError):
    """A bundled resource could not be copied into the support directory"""

    def __init__(self, resource, cause):
        self.resource = resource
        self.cause = cause
        super().__init__(f"could not stage {resource}: {cause}")


class SpawnError(StreamError):
    """The OS refused to launch a child process"""

    def __init__(self, role, cause):
        self.role = role
        self.cause = cause
        super().__init__(f"could not launch {role}: {cause}")


class StreamAlreadyActiveError(StreamError):
    """start() was called while a session is still active"""
