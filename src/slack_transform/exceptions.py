"""Exception hierarchy for Slack export transformation"""


class SlackTransformError(Exception):
    """Base class for every error raised by slack_transform"""


class ConfigurationError(SlackTransformError, ValueError):
    """Invalid or unreachable configuration, detected before any channel runs"""


class ExportParseError(SlackTransformError):
    """The Slack export archive could not be read"""


class ThreadsStorageError(SlackTransformError):
    """Thread store backend failure (connection or serialization)"""


class AttachmentError(SlackTransformError):
    """An attachment could not be copied out of the export"""


class TransformError(SlackTransformError):
    """A channel failed to transform; the whole run is aborted"""

    def __init__(self, channel: str, message: str):
        super().__init__(f"Failed to transform channel {channel}: {message}")
        self.channel = channel
