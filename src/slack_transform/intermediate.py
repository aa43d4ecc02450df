"""Intermediate representation between a Slack export and a Mattermost import"""

import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .slack_export import CHANNEL_TYPE_DIRECT, CHANNEL_TYPE_GROUP
from .utils import is_valid_channel_name_characters, truncate_runes

logger = logging.getLogger(__name__)

# Mattermost model limits
CHANNEL_NAME_MAX_LENGTH = 64
CHANNEL_DISPLAY_NAME_MAX_RUNES = 64
CHANNEL_PURPOSE_MAX_RUNES = 250
CHANNEL_HEADER_MAX_RUNES = 1024
CHANNEL_GROUP_MAX_USERS = 8
USER_POSITION_MAX_RUNES = 128
USER_FIRST_NAME_MAX_RUNES = 64
USER_LAST_NAME_MAX_RUNES = 64
POST_PROPS_MAX_RUNES = 800000

# Default PostgreSQL max post size in Mattermost 6.6
POSTGRESQL_MAX_POST_SIZE = 65535 // 4

WORKFLOW_USER_ID = "importedworkflow"
WORKFLOW_USER_NAME = "imported-workflow"


class IntermediateChannel(BaseModel):
    """Destination channel resolved from a Slack channel"""

    id: str = ""
    original_name: str
    name: str
    display_name: str
    members: List[str] = Field(default_factory=list)
    members_usernames: List[str] = Field(default_factory=list)
    purpose: str = ""
    header: str = ""
    topic: str = ""
    type: str

    @property
    def is_direct_or_group(self) -> bool:
        return self.type in (CHANNEL_TYPE_DIRECT, CHANNEL_TYPE_GROUP)

    def sanitise(self) -> None:
        """Clamp names and texts to the Mattermost limits"""
        if self.type == CHANNEL_TYPE_DIRECT:
            return

        self.name = self.name.strip("_-")
        if len(self.name) > CHANNEL_NAME_MAX_LENGTH:
            logger.warning(
                f"Channel {self.display_name} handle exceeds the maximum length. "
                "It will be truncated when imported."
            )
            self.name = self.name[:CHANNEL_NAME_MAX_LENGTH]
        if len(self.name) == 1:
            self.name = "slack-channel-" + self.name
        if not is_valid_channel_name_characters(self.name):
            self.name = self.id.lower()

        self.display_name = self.display_name.strip("_-")
        if len(self.display_name) > CHANNEL_DISPLAY_NAME_MAX_RUNES:
            logger.warning(
                f"Channel {self.display_name} display name exceeds the maximum length. "
                "It will be truncated when imported."
            )
            self.display_name = truncate_runes(
                self.display_name, CHANNEL_DISPLAY_NAME_MAX_RUNES
            )
        if len(self.display_name) == 1:
            self.display_name = "slack-channel-" + self.display_name

        if len(self.purpose) > CHANNEL_PURPOSE_MAX_RUNES:
            logger.warning(
                f"Channel {self.display_name} purpose exceeds the maximum length. "
                "It will be truncated when imported."
            )
            self.purpose = truncate_runes(self.purpose, CHANNEL_PURPOSE_MAX_RUNES)

        if len(self.header) > CHANNEL_HEADER_MAX_RUNES:
            logger.warning(
                f"Channel {self.display_name} header exceeds the maximum length. "
                "It will be truncated when imported."
            )
            self.header = truncate_runes(self.header, CHANNEL_HEADER_MAX_RUNES)


class IntermediateUser(BaseModel):
    """Destination user resolved from a Slack user"""

    id: str
    username: str
    first_name: str = ""
    last_name: str = ""
    position: str = ""
    email: str = ""
    password: str = ""
    memberships: List[str] = Field(default_factory=list)
    auth_data: Optional[str] = None
    auth_service: str = ""

    def sanitise(self) -> None:
        if not self.email:
            self.email = f"{self.username}@example.com"
            logger.warning(
                f"User {self.username} does not have an email address in the Slack export. "
                f"Used {self.email} as a placeholder. The user should update their "
                "email address once logged in to the system."
            )

        if len(self.position) > USER_POSITION_MAX_RUNES:
            logger.warning(
                f"User {self.username} position {self.position} is too long. "
                "Field will be truncated"
            )
            self.position = truncate_runes(self.position, USER_POSITION_MAX_RUNES)

        if len(self.first_name) > USER_FIRST_NAME_MAX_RUNES:
            logger.warning(
                f"User {self.username} first name {self.first_name} is too long. "
                "Field will be truncated"
            )
            self.first_name = truncate_runes(self.first_name, USER_FIRST_NAME_MAX_RUNES)

        if len(self.last_name) > USER_LAST_NAME_MAX_RUNES:
            logger.warning(
                f"User {self.username} last name {self.last_name} is too long. "
                "Field will be truncated"
            )
            self.last_name = truncate_runes(self.last_name, USER_LAST_NAME_MAX_RUNES)


class IntermediatePost(BaseModel):
    """A message, or a thread root carrying its replies

    Posts are mutated in place while a channel is assembled: replies are
    appended to the root returned by the thread store, never reordered.
    """

    user: str = ""
    channel: str = ""
    message: str = ""
    props: Optional[Dict[str, Any]] = None
    create_at: int = 0
    attachments: List[str] = Field(default_factory=list)
    replies: List["IntermediatePost"] = Field(default_factory=list)
    is_direct: bool = False
    channel_members: List[str] = Field(default_factory=list)

    def sanitise(self) -> None:
        self.message = truncate_runes(self.message, POSTGRESQL_MAX_POST_SIZE)


class Intermediate(BaseModel):
    """Everything the exporter needs to write a Mattermost import file"""

    public_channels: List[IntermediateChannel] = Field(default_factory=list)
    private_channels: List[IntermediateChannel] = Field(default_factory=list)
    group_channels: List[IntermediateChannel] = Field(default_factory=list)
    direct_channels: List[IntermediateChannel] = Field(default_factory=list)
    users_by_id: Dict[str, IntermediateUser] = Field(default_factory=dict)
    posts: List[IntermediatePost] = Field(default_factory=list)

    @property
    def all_channels(self) -> List[IntermediateChannel]:
        return (
            self.public_channels
            + self.private_channels
            + self.group_channels
            + self.direct_channels
        )

    def channels_by_original_name(self) -> Dict[str, IntermediateChannel]:
        return {channel.original_name: channel for channel in self.all_channels}
