"""Slack Transform - Convert Slack exports into Mattermost bulk-import files"""

from .config import RedisConfig, TransformConfig, load_config
from .exceptions import (
    AttachmentError,
    ConfigurationError,
    ExportParseError,
    SlackTransformError,
    ThreadsStorageError,
    TransformError,
)
from .exporter import MattermostExporter
from .intermediate import (
    Intermediate,
    IntermediateChannel,
    IntermediatePost,
    IntermediateUser,
)
from .slack_export import (
    MessageKind,
    SlackChannel,
    SlackComment,
    SlackExport,
    SlackFile,
    SlackPost,
    SlackUser,
)
from .thread_reconstructor import ChannelContext, ThreadReconstructor
from .threads_storage import (
    MemoryThreadsStorage,
    MemoryThreadsStorageFactory,
    RedisThreadsStorage,
    RedisThreadsStorageFactory,
    ThreadsStorage,
    create_storage_factory,
)
from .transformer import Transformer
from .cli import cli

__all__ = [
    "RedisConfig",
    "TransformConfig",
    "load_config",
    "AttachmentError",
    "ConfigurationError",
    "ExportParseError",
    "SlackTransformError",
    "ThreadsStorageError",
    "TransformError",
    "MattermostExporter",
    "Intermediate",
    "IntermediateChannel",
    "IntermediatePost",
    "IntermediateUser",
    "MessageKind",
    "SlackChannel",
    "SlackComment",
    "SlackExport",
    "SlackFile",
    "SlackPost",
    "SlackUser",
    "ChannelContext",
    "ThreadReconstructor",
    "MemoryThreadsStorage",
    "MemoryThreadsStorageFactory",
    "RedisThreadsStorage",
    "RedisThreadsStorageFactory",
    "ThreadsStorage",
    "create_storage_factory",
    "Transformer",
    "cli",
]
