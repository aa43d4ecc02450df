"""Write the intermediate representation as a Mattermost bulk-import file

The bulk-import format is JSON Lines: a version line followed by one object
per channel, user, direct channel and post. Replies are nested inside their
root post.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterator, List

from .intermediate import Intermediate, IntermediateChannel, IntermediatePost, IntermediateUser

IMPORT_VERSION = 1


class MattermostExporter:
    """Serialize an ``Intermediate`` aggregate to JSONL

    Example:
        >>> exporter = MattermostExporter(team="myteam")
        >>> exporter.export(transformer.intermediate, "bulk-export.jsonl")
        137
    """

    def __init__(self, team: str):
        self.team = team
        self.logger = logging.getLogger(__name__)

    def channel_line(self, channel: IntermediateChannel) -> Dict[str, Any]:
        return {
            "type": "channel",
            "channel": {
                "team": self.team,
                "name": channel.name,
                "display_name": channel.display_name,
                "type": channel.type,
                "header": channel.header,
                "purpose": channel.purpose,
            },
        }

    def direct_channel_line(self, channel: IntermediateChannel) -> Dict[str, Any]:
        return {
            "type": "direct_channel",
            "direct_channel": {
                "members": channel.members_usernames,
                "header": channel.header,
            },
        }

    def user_line(self, user: IntermediateUser) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "username": user.username,
            "email": user.email,
            "nickname": "",
            "first_name": user.first_name,
            "last_name": user.last_name,
            "position": user.position,
            "roles": "system_user",
            "teams": [
                {
                    "name": self.team,
                    "roles": "team_user",
                    "channels": [
                        {"name": name, "roles": "channel_user"} for name in user.memberships
                    ],
                }
            ],
        }
        if user.auth_service:
            data["auth_service"] = user.auth_service
            data["auth_data"] = user.auth_data
        if user.password:
            data["password"] = user.password
        return {"type": "user", "user": data}

    @staticmethod
    def _attachments(paths: List[str]) -> List[Dict[str, str]]:
        return [{"path": path} for path in paths]

    def _reply(self, reply: IntermediatePost) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "user": reply.user,
            "message": reply.message,
            "create_at": reply.create_at,
            "attachments": self._attachments(reply.attachments),
        }
        if reply.props:
            data["props"] = reply.props
        return data

    def post_line(self, post: IntermediatePost) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "user": post.user,
            "message": post.message,
            "create_at": post.create_at,
            "attachments": self._attachments(post.attachments),
            "replies": [self._reply(reply) for reply in post.replies],
        }
        if post.props:
            data["props"] = post.props

        if post.is_direct:
            return {
                "type": "direct_post",
                "direct_post": {"channel_members": post.channel_members, **data},
            }
        return {
            "type": "post",
            "post": {"team": self.team, "channel": post.channel, **data},
        }

    def lines(self, intermediate: Intermediate) -> Iterator[Dict[str, Any]]:
        """Import lines in the order Mattermost requires"""
        yield {"type": "version", "version": IMPORT_VERSION}

        for channel in intermediate.public_channels + intermediate.private_channels:
            yield self.channel_line(channel)

        for user in intermediate.users_by_id.values():
            yield self.user_line(user)

        for channel in intermediate.group_channels + intermediate.direct_channels:
            yield self.direct_channel_line(channel)

        for post in intermediate.posts:
            yield self.post_line(post)

    def export(self, intermediate: Intermediate, output_path: str) -> int:
        """Write the import file

        Returns:
            Number of lines written
        """
        self.logger.info(f"Exporting to {output_path}")

        count = 0
        with open(Path(output_path), "w", encoding="utf-8") as f:
            for line in self.lines(intermediate):
                f.write(json.dumps(line, ensure_ascii=False))
                f.write("\n")
                count += 1

        self.logger.debug(f"Wrote {count} lines to {output_path}")
        return count
