"""Assemble a channel's posts into threads

Posts arrive in chronological order but flat: a reply only points at its
root through ``thread_ts``. The reconstructor classifies every post as a new
root or as a reply, appends replies to their root held by the channel's
thread store, and keeps creation times unique within the channel.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Set

from .intermediate import IntermediateChannel, IntermediatePost, WORKFLOW_USER_NAME
from .slack_export import SlackPost
from .threads_storage import ThreadsStorage


@dataclass
class ChannelContext:
    """State owned by one channel while its posts are transformed

    The timestamp ledger is discarded once the channel is finished; roots
    and their thread ids live on in the thread store.
    """

    channel: IntermediateChannel
    threads: ThreadsStorage
    import_workflow_messages: bool = False

    # creation times already assigned in this channel
    timestamps: Set[int] = field(default_factory=set)

    def reserve_timestamp(self, create_at: int) -> int:
        """Return the first unused creation time >= ``create_at`` and claim it"""
        while create_at in self.timestamps:
            create_at += 1
        self.timestamps.add(create_at)
        return create_at


class ThreadReconstructor:
    """Rebuild thread structure while posts are being transformed

    Handles:
    - Direct and group channel member annotation
    - Creation time collisions within a channel
    - Replies appended to roots already stored (possibly in Redis)
    - Replies whose root is unknown (dropped and reported)

    Example:
        >>> reconstructor = ThreadReconstructor()
        >>> context = ChannelContext(channel=channel, threads=MemoryThreadsStorage())
        >>> reconstructor.add_post(original, post, context)
        >>> context.threads.changed()
        [IntermediatePost(...)]
    """

    def __init__(self) -> None:
        self.logger = logging.getLogger(__name__)

    def add_post(
        self,
        original: SlackPost,
        post: IntermediatePost,
        context: ChannelContext,
    ) -> Optional[IntermediatePost]:
        """Place ``post`` into the channel's threads

        Args:
            original: Slack message the post was built from
            post: Transformed post; its create_at may be adjusted
            context: Channel being transformed

        Returns:
            The root post the message now belongs to (the post itself for a
            root), or None if the reply was dropped
        """
        channel = context.channel

        # direct and group posts need the channel members in the import line
        if channel.is_direct_or_group:
            post.is_direct = True
            post.channel_members = list(channel.members_usernames)
        else:
            post.is_direct = False

        post.create_at = context.reserve_timestamp(post.create_at)
        post.sanitise()

        if original.is_thread_reply:
            return self._add_reply(original, post, context)

        thread_id = str(post.create_at)
        known_id = context.threads.find_thread_id(original.ts)
        if context.threads.has(thread_id):
            if known_id == thread_id:
                # same root stored by a previous run over this export
                self.logger.debug(f"Replacing root post for thread {thread_id}")
            else:
                self.logger.warning(f"Overwriting root post for thread {thread_id}")
        context.threads.store(thread_id, post)
        # replies belong to the first root seen with this ts
        if known_id is None:
            context.threads.record_thread_id(original.ts, thread_id)
        return post

    def _add_reply(
        self,
        original: SlackPost,
        post: IntermediatePost,
        context: ChannelContext,
    ) -> Optional[IntermediatePost]:
        thread_id = context.threads.find_thread_id(original.thread_ts)
        root = context.threads.lookup(thread_id) if thread_id is not None else None
        if root is None:
            self.logger.error(
                f"Couldn't find root post for reply in channel "
                f"{context.channel.name}: ts={original.ts} thread_ts={original.thread_ts}"
            )
            return None

        if not context.import_workflow_messages and root.user == WORKFLOW_USER_NAME:
            return None

        root.replies.append(post)
        return root
