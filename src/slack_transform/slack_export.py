"""Slack export archive models and parser

A Slack export is a zip archive laid out as::

    channels.json            public channels
    groups.json              private channels
    mpims.json               group conversations
    dms.json                 direct conversations
    users.json               workspace members
    <channel>/<date>.json    one list of messages per channel and day
    __uploads/<file-id>/...  uploaded files (present in some exports)

``SlackExport.from_zip`` reads those files into the pydantic models below.
"""

import json
import logging
import zipfile
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .exceptions import ExportParseError
from .markup import convert_post_text

logger = logging.getLogger(__name__)

CHANNEL_TYPE_OPEN = "O"
CHANNEL_TYPE_PRIVATE = "P"
CHANNEL_TYPE_GROUP = "G"
CHANNEL_TYPE_DIRECT = "D"

UPLOADS_DIRECTORY = "__uploads"


class SlackProfile(BaseModel):
    """Profile block of a Slack user"""

    model_config = ConfigDict(extra="ignore")

    first_name: str = ""
    last_name: str = ""
    title: str = ""
    email: str = ""


class SlackUser(BaseModel):
    """Slack workspace member as found in users.json"""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str = ""
    deleted: bool = False
    is_bot: bool = False
    profile: SlackProfile = Field(default_factory=SlackProfile)

    @property
    def username(self) -> str:
        return self.name


class SlackChannelSub(BaseModel):
    """Topic or purpose of a channel"""

    model_config = ConfigDict(extra="ignore")

    value: str = ""


class SlackChannel(BaseModel):
    """Slack channel, private group, group conversation or DM"""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str = ""
    creator: str = ""
    members: List[str] = Field(default_factory=list)
    purpose: SlackChannelSub = Field(default_factory=SlackChannelSub)
    topic: SlackChannelSub = Field(default_factory=SlackChannelSub)
    type: str = CHANNEL_TYPE_OPEN

    @property
    def original_name(self) -> str:
        """Name used by the export's message directory (id for unnamed DMs)"""
        return self.name or self.id


class SlackFile(BaseModel):
    """File shared in a message"""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str = ""


class SlackComment(BaseModel):
    """Comment attached to a file_comment message"""

    model_config = ConfigDict(extra="ignore")

    comment: str = ""
    user: str = ""


class MessageKind(str, Enum):
    """Closed set of message variants the transformer knows how to handle"""

    PLAIN = "plain"
    FILE_COMMENT = "file_comment"
    BOT = "bot"
    JOIN_LEAVE = "join_leave"
    ME = "me"
    TOPIC = "topic"
    PURPOSE = "purpose"
    NAME = "name"
    UNSUPPORTED = "unsupported"


MESSAGE_SUBTYPE_KINDS = {
    "": MessageKind.PLAIN,
    "file_share": MessageKind.PLAIN,
    "thread_broadcast": MessageKind.PLAIN,
    "file_comment": MessageKind.FILE_COMMENT,
    "bot_message": MessageKind.BOT,
    "channel_join": MessageKind.JOIN_LEAVE,
    "channel_leave": MessageKind.JOIN_LEAVE,
    "me_message": MessageKind.ME,
    "channel_topic": MessageKind.TOPIC,
    "channel_purpose": MessageKind.PURPOSE,
    "channel_name": MessageKind.NAME,
}


class SlackPost(BaseModel):
    """Raw Slack message record"""

    model_config = ConfigDict(extra="ignore")

    type: str = "message"
    subtype: str = ""
    user: str = ""
    text: str = ""
    ts: str = ""
    thread_ts: str = ""
    bot_id: str = ""
    bot_username: str = ""
    file: Optional[SlackFile] = None
    files: Optional[List[SlackFile]] = None
    comment: Optional[SlackComment] = None
    attachments: List[Dict[str, Any]] = Field(default_factory=list)

    @property
    def kind(self) -> MessageKind:
        if self.type != "message":
            return MessageKind.UNSUPPORTED
        return MESSAGE_SUBTYPE_KINDS.get(self.subtype, MessageKind.UNSUPPORTED)

    @property
    def is_thread_reply(self) -> bool:
        return bool(self.thread_ts) and self.thread_ts != self.ts

    @property
    def shared_files(self) -> List[SlackFile]:
        """Files shared by this message (legacy single ``file`` first)"""
        if self.file is not None:
            return [self.file]
        return list(self.files or [])


@dataclass
class SlackExport:
    """Parsed content of a Slack export archive"""

    public_channels: List[SlackChannel] = field(default_factory=list)
    private_channels: List[SlackChannel] = field(default_factory=list)
    group_channels: List[SlackChannel] = field(default_factory=list)
    direct_channels: List[SlackChannel] = field(default_factory=list)
    users: List[SlackUser] = field(default_factory=list)
    posts: Dict[str, List[SlackPost]] = field(default_factory=dict)
    uploads: Dict[str, zipfile.ZipInfo] = field(default_factory=dict)
    archive: Optional[zipfile.ZipFile] = None

    @property
    def all_channels(self) -> List[SlackChannel]:
        return (
            self.public_channels
            + self.private_channels
            + self.group_channels
            + self.direct_channels
        )

    @classmethod
    def from_zip(
        cls, archive: zipfile.ZipFile, skip_convert_posts: bool = False
    ) -> "SlackExport":
        """Parse a Slack export zip archive

        Args:
            archive: Open zip archive
            skip_convert_posts: Keep Slack markup and mentions as-is

        Returns:
            SlackExport with channels, users, posts and upload entries

        Raises:
            ExportParseError: If a JSON file in the archive is malformed
        """
        export = cls(archive=archive)
        channel_files = {
            "channels.json": (export.public_channels, CHANNEL_TYPE_OPEN),
            "groups.json": (export.private_channels, CHANNEL_TYPE_PRIVATE),
            "mpims.json": (export.group_channels, CHANNEL_TYPE_GROUP),
            "dms.json": (export.direct_channels, CHANNEL_TYPE_DIRECT),
        }

        for info in archive.infolist():
            if info.is_dir():
                continue

            name = info.filename
            if name in channel_files:
                target, channel_type = channel_files[name]
                for record in _read_json_list(archive, info):
                    channel = _validate(SlackChannel, record, name)
                    channel.type = channel_type
                    target.append(channel)
            elif name == "users.json":
                export.users.extend(
                    _validate(SlackUser, record, name)
                    for record in _read_json_list(archive, info)
                )
            else:
                parts = name.split("/")
                if len(parts) == 2 and parts[1].endswith(".json"):
                    posts = export.posts.setdefault(parts[0], [])
                    posts.extend(
                        _validate(SlackPost, record, name)
                        for record in _read_json_list(archive, info)
                    )
                elif len(parts) == 3 and parts[0] == UPLOADS_DIRECTORY:
                    export.uploads[parts[1]] = info

        logger.info(
            f"Parsed export: {len(export.users)} users, "
            f"{len(export.all_channels)} channels, "
            f"{sum(len(p) for p in export.posts.values())} posts, "
            f"{len(export.uploads)} uploads"
        )

        if not skip_convert_posts:
            export.convert_posts()

        return export

    def convert_posts(self) -> None:
        """Rewrite Slack mentions and markup in every post to Mattermost syntax"""
        logger.info("Converting post markup")
        usernames = {user.id: user.username for user in self.users}
        channel_names = {
            channel.id: channel.name for channel in self.all_channels if channel.name
        }
        for posts in self.posts.values():
            for post in posts:
                post.text = convert_post_text(post.text, usernames, channel_names)
                if post.comment is not None:
                    post.comment.comment = convert_post_text(
                        post.comment.comment, usernames, channel_names
                    )


def _read_json_list(archive: zipfile.ZipFile, info: zipfile.ZipInfo) -> List[Any]:
    try:
        with archive.open(info) as f:
            data = json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ExportParseError(f"Invalid JSON in {info.filename}: {e}") from e

    if not isinstance(data, list):
        raise ExportParseError(f"Expected a JSON list in {info.filename}")
    return data


def _validate(model, record: Any, filename: str):
    try:
        return model.model_validate(record)
    except ValidationError as e:
        raise ExportParseError(f"Invalid record in {filename}: {e}") from e
