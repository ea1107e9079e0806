"""Exception hierarchy for stream limit enforcement."""


class StreamLimitError(Exception):
    """Base error for the stream limit service."""


class InvalidEventError(StreamLimitError):
    """Raised when a playback-start payload cannot be turned into an event."""


class LimitTableError(StreamLimitError):
    """Raised when a serialized limit table cannot be parsed."""


class CollaboratorError(StreamLimitError):
    """Raised when a session or media-source registry call fails."""


class JellyfinError(CollaboratorError):
    """Raised when the Jellyfin API rejects or fails a request."""


class LiveStreamNotFoundError(CollaboratorError):
    """Raised when no live stream is open for a media source."""


class VerificationInconclusiveError(StreamLimitError):
    """Raised when a session snapshot cannot be fetched for verification."""
