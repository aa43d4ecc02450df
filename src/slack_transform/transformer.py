"""Transform a parsed Slack export into the intermediate representation

The ``Transformer`` runs the whole conversion for one export:

1. users       -> ``IntermediateUser`` (sanitised, optional SSO auth data)
2. channels    -> ``IntermediateChannel`` per destination channel type
3. memberships -> channel names per user, member usernames per DM/group
4. posts       -> one thread store per channel, assembled by the
                  ``ThreadReconstructor`` and collected into a flat list
"""

import json
import logging
import secrets
from typing import Callable, Dict, List, Optional

from .attachments import copy_attachment
from .config import TransformConfig
from .exceptions import AttachmentError, ThreadsStorageError, TransformError
from .intermediate import (
    CHANNEL_GROUP_MAX_USERS,
    POST_PROPS_MAX_RUNES,
    WORKFLOW_USER_ID,
    WORKFLOW_USER_NAME,
    Intermediate,
    IntermediateChannel,
    IntermediatePost,
    IntermediateUser,
)
from .slack_export import (
    CHANNEL_TYPE_DIRECT,
    CHANNEL_TYPE_GROUP,
    CHANNEL_TYPE_PRIVATE,
    MessageKind,
    SlackChannel,
    SlackExport,
    SlackPost,
    SlackUser,
)
from .thread_reconstructor import ChannelContext, ThreadReconstructor
from .threads_storage import MemoryThreadsStorageFactory
from .utils import convert_channel_name, convert_slack_timestamp, slack_timestamp_sort_key

PostHandler = Callable[
    [SlackPost, IntermediateChannel, TransformConfig, SlackExport],
    Optional[IntermediatePost],
]


def filter_valid_members(members: List[str], users: Dict[str, IntermediateUser]) -> List[str]:
    return [member for member in members if member in users]


class Transformer:
    """Convert a Slack export into an ``Intermediate`` aggregate

    Example:
        >>> transformer = Transformer(team="myteam")
        >>> transformer.transform(TransformConfig(), slack_export)
        >>> len(transformer.intermediate.posts)
        42
    """

    def __init__(self, team: str):
        self.team = team
        self.logger = logging.getLogger(__name__)
        self.intermediate = Intermediate()
        self.reconstructor = ThreadReconstructor()
        self._workflow_user: Optional[IntermediateUser] = None
        self.post_handlers: Dict[MessageKind, PostHandler] = {
            MessageKind.PLAIN: self._transform_plain_post,
            MessageKind.FILE_COMMENT: self._transform_file_comment,
            MessageKind.BOT: self._transform_bot_post,
            MessageKind.JOIN_LEAVE: self._skip_post,
            MessageKind.ME: self._skip_post,
            MessageKind.TOPIC: self._transform_authored_post,
            MessageKind.PURPOSE: self._transform_authored_post,
            MessageKind.NAME: self._transform_authored_post,
            MessageKind.UNSUPPORTED: self._unsupported_post,
        }

    # Users and channels

    def transform_users(
        self,
        users: List[SlackUser],
        auth_data_as_email: bool = False,
        auth_service: str = "",
    ) -> None:
        self.logger.info("Transforming users")

        result_users: Dict[str, IntermediateUser] = {}
        for user in users:
            new_user = IntermediateUser(
                id=user.id,
                username=user.username,
                first_name=user.profile.first_name,
                last_name=user.profile.last_name,
                position=user.profile.title,
                email=user.profile.email,
            )
            new_user.sanitise()

            if auth_data_as_email and auth_service:
                new_user.auth_data = new_user.email
                new_user.auth_service = auth_service

            result_users[new_user.id] = new_user
            self.logger.debug(f"Slack user with email {new_user.email} has been imported.")

        self.intermediate.users_by_id = result_users

    def transform_channels(self, channels: List[SlackChannel]) -> List[IntermediateChannel]:
        """Map Slack channels to destination channels

        Direct and group conversations need at least two known members.
        Group conversations above the Mattermost group size become private
        channels named after their purpose.
        """
        result_channels = []
        for channel in channels:
            valid_members = filter_valid_members(channel.members, self.intermediate.users_by_id)
            if channel.type in (CHANNEL_TYPE_DIRECT, CHANNEL_TYPE_GROUP) and len(valid_members) <= 1:
                self.logger.warning(
                    "Bulk export for direct channels containing a single member is not "
                    f"supported. Not importing channel {channel.original_name}"
                )
                continue

            channel_type = channel.type
            name = channel.name
            if channel_type == CHANNEL_TYPE_GROUP and len(valid_members) > CHANNEL_GROUP_MAX_USERS:
                name = channel.purpose.value or channel.name
                channel_type = CHANNEL_TYPE_PRIVATE

            new_channel = IntermediateChannel(
                id=channel.id,
                original_name=channel.original_name,
                name=convert_channel_name(name, channel.id),
                display_name=name or channel.id,
                members=valid_members,
                purpose=channel.purpose.value,
                header=channel.topic.value,
                topic=channel.topic.value,
                type=channel_type,
            )
            new_channel.sanitise()
            result_channels.append(new_channel)

        return result_channels

    def transform_all_channels(self, slack_export: SlackExport) -> None:
        self.logger.info("Transforming channels")

        self.intermediate.public_channels = self.transform_channels(slack_export.public_channels)
        self.intermediate.private_channels = self.transform_channels(slack_export.private_channels)

        # group conversations above the size limit come back as private channels
        group_channels = []
        for channel in self.transform_channels(slack_export.group_channels):
            if channel.type == CHANNEL_TYPE_PRIVATE:
                self.intermediate.private_channels.append(channel)
            else:
                group_channels.append(channel)
        self.intermediate.group_channels = group_channels

        self.intermediate.direct_channels = self.transform_channels(slack_export.direct_channels)

    def populate_user_memberships(self) -> None:
        self.logger.info("Populating user memberships")

        team_channels = self.intermediate.public_channels + self.intermediate.private_channels
        for user_id, user in self.intermediate.users_by_id.items():
            user.memberships = [
                channel.name for channel in team_channels if user_id in channel.members
            ]

    def populate_channel_memberships(self) -> None:
        self.logger.info("Populating channel memberships")

        users = self.intermediate.users_by_id
        for channel in self.intermediate.group_channels + self.intermediate.direct_channels:
            channel.members_usernames = [
                users[member_id].username for member_id in channel.members if member_id in users
            ]

    def workflow_user(self) -> IntermediateUser:
        """Author of imported bot/workflow messages, created on first use"""
        if self._workflow_user is None:
            existing = self.intermediate.users_by_id.get(WORKFLOW_USER_ID)
            if existing is None:
                existing = IntermediateUser(
                    id=WORKFLOW_USER_ID,
                    username=WORKFLOW_USER_NAME,
                    first_name=WORKFLOW_USER_NAME,
                    email=f"{WORKFLOW_USER_NAME}@example.com",
                    password=secrets.token_hex(13),
                )
                existing.sanitise()
                self.intermediate.users_by_id[WORKFLOW_USER_ID] = existing
            self._workflow_user = existing
        return self._workflow_user

    # Posts

    def _resolve_author(self, user_id: str) -> Optional[IntermediateUser]:
        if not user_id:
            self.logger.warning("Unable to import the message as the user field is missing.")
            return None
        author = self.intermediate.users_by_id.get(user_id)
        if author is None:
            self.logger.warning(
                "Unable to add the message as the Slack user does not exist in Mattermost. "
                f"user={user_id}"
            )
        return author

    def _new_post(
        self, author: IntermediateUser, channel: IntermediateChannel, message: str, ts: str
    ) -> IntermediatePost:
        return IntermediatePost(
            user=author.username,
            channel=channel.name,
            message=message,
            create_at=convert_slack_timestamp(ts),
        )

    def _add_files(
        self,
        post: SlackPost,
        new_post: IntermediatePost,
        config: TransformConfig,
        slack_export: SlackExport,
    ) -> None:
        if config.skip_attachments:
            return
        for file in post.shared_files:
            path = copy_attachment(
                file, slack_export.uploads, slack_export.archive, config.attachments_dir
            )
            if path is not None:
                new_post.attachments.append(path)

    def _add_props(
        self, post: SlackPost, new_post: IntermediatePost, config: TransformConfig
    ) -> bool:
        """Attach Slack attachments as props; False if the post must be discarded"""
        if not post.attachments:
            return True

        props = {"attachments": post.attachments}
        serialized = json.dumps(props, ensure_ascii=False, separators=(",", ":"))
        if len(serialized) <= POST_PROPS_MAX_RUNES:
            new_post.props = props
            return True

        if config.discard_invalid_props:
            self.logger.warning(
                "Unable import post as props exceed the maximum character count. "
                "Skipping as --discard-invalid-props is enabled."
            )
            return False

        self.logger.warning(
            "Unable to add props to post as they exceed the maximum character count."
        )
        return True

    def _transform_plain_post(self, post, channel, config, slack_export):
        author = self._resolve_author(post.user)
        if author is None:
            return None

        new_post = self._new_post(author, channel, post.text, post.ts)
        self._add_files(post, new_post, config, slack_export)
        if not self._add_props(post, new_post, config):
            return None
        return new_post

    def _transform_file_comment(self, post, channel, config, slack_export):
        if post.comment is None:
            self.logger.warning("Unable to import the message as it has no comments.")
            return None
        author = self._resolve_author(post.comment.user)
        if author is None:
            return None
        return self._new_post(author, channel, post.comment.comment, post.ts)

    def _transform_bot_post(self, post, channel, config, slack_export):
        if not config.import_workflow_messages:
            return None

        new_post = self._new_post(self.workflow_user(), channel, post.text, post.ts)
        self._add_files(post, new_post, config, slack_export)
        if not self._add_props(post, new_post, config):
            return None
        return new_post

    def _transform_authored_post(self, post, channel, config, slack_export):
        """Topic, purpose and name changes are imported as regular messages"""
        author = self._resolve_author(post.user)
        if author is None:
            return None
        return self._new_post(author, channel, post.text, post.ts)

    def _skip_post(self, post, channel, config, slack_export):
        return None

    def _unsupported_post(self, post, channel, config, slack_export):
        self.logger.warning(
            "Unable to import the message as its type is not supported. "
            f"post_type={post.type}, post_subtype={post.subtype}"
        )
        return None

    def transform_channel_posts(
        self,
        config: TransformConfig,
        slack_export: SlackExport,
        context: ChannelContext,
        channel_posts: List[SlackPost],
    ) -> None:
        """Feed one channel's posts, oldest first, to the thread reconstructor"""
        for post in sorted(channel_posts, key=lambda p: slack_timestamp_sort_key(p.ts)):
            handler = self.post_handlers[post.kind]
            new_post = handler(post, context.channel, config, slack_export)
            if new_post is not None:
                self.reconstructor.add_post(post, new_post, context)

    def transform_posts(
        self,
        config: TransformConfig,
        slack_export: SlackExport,
        storage_factory=None,
    ) -> None:
        """Transform every channel's posts

        Raises:
            TransformError: If a channel's thread store or attachments fail;
                the run is aborted
        """
        self.logger.info("Transforming posts")

        storage_factory = storage_factory or MemoryThreadsStorageFactory()
        channels_by_original_name = self.intermediate.channels_by_original_name()

        result_posts: List[IntermediatePost] = []
        for original_channel_name, channel_posts in slack_export.posts.items():
            channel = channels_by_original_name.get(original_channel_name)
            if channel is None:
                self.logger.warning(
                    f"--- Couldn't find channel {original_channel_name} referenced by posts"
                )
                continue

            try:
                with storage_factory.open(original_channel_name) as threads:
                    context = ChannelContext(
                        channel=channel,
                        threads=threads,
                        import_workflow_messages=config.import_workflow_messages,
                    )
                    self.transform_channel_posts(config, slack_export, context, channel_posts)

                    changed = threads.changed()
                    threads.flush()
            except (ThreadsStorageError, AttachmentError) as e:
                self.logger.error(f"Aborting on channel {original_channel_name}: {e}")
                raise TransformError(original_channel_name, str(e)) from e

            self.logger.debug(
                f"Channel {original_channel_name}: {len(channel_posts)} messages, "
                f"{len(changed)} threads"
            )
            result_posts.extend(changed)

        self.intermediate.posts = result_posts

    def transform(
        self,
        config: TransformConfig,
        slack_export: SlackExport,
        storage_factory=None,
    ) -> Intermediate:
        self.transform_users(slack_export.users, config.auth_data_as_email, config.auth_service)

        if config.skip_channels:
            return self.intermediate

        self.transform_all_channels(slack_export)
        self.populate_user_memberships()
        self.populate_channel_memberships()

        if not config.skip_posts:
            self.transform_posts(config, slack_export, storage_factory)

        return self.intermediate
