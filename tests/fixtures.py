"""Test fixtures for the Slack transform tests"""

import json
import zipfile
from pathlib import Path
from typing import Any, Dict, List, Optional

from slack_transform import (
    IntermediateChannel,
    IntermediatePost,
    SlackChannel,
    SlackPost,
    SlackUser,
)


def sample_user(user_id: str = "U001", name: str = "john.doe", email: str = "john.doe@example.com") -> SlackUser:
    """Create a SlackUser with a full profile"""
    return SlackUser.model_validate({
        "id": user_id,
        "name": name,
        "profile": {
            "first_name": "John",
            "last_name": "Doe",
            "title": "Engineer",
            "email": email,
        },
    })


def sample_users() -> List[SlackUser]:
    """Three known users"""
    return [
        sample_user("U001", "john.doe", "john.doe@example.com"),
        sample_user("U002", "jane.smith", "jane.smith@example.com"),
        sample_user("U003", "bob.lee", "bob.lee@example.com"),
    ]


def sample_channel(
    name: str = "engineering",
    channel_id: str = "C001",
    members: Optional[List[str]] = None,
    channel_type: str = "O",
) -> SlackChannel:
    """Create a SlackChannel"""
    return SlackChannel(
        id=channel_id,
        name=name,
        members=members if members is not None else ["U001", "U002"],
        purpose={"value": f"{name} purpose"},
        topic={"value": f"{name} topic"},
        type=channel_type,
    )


def intermediate_channel(
    name: str = "engineering",
    channel_type: str = "O",
    members_usernames: Optional[List[str]] = None,
) -> IntermediateChannel:
    """Create an already transformed channel"""
    return IntermediateChannel(
        id="C001",
        original_name=name,
        name=name,
        display_name=name,
        members=["U001", "U002"],
        members_usernames=members_usernames or [],
        type=channel_type,
    )


def slack_post(ts: str, thread_ts: str = "", text: str = "", user: str = "U001", subtype: str = "") -> SlackPost:
    """Create a raw Slack message"""
    return SlackPost(ts=ts, thread_ts=thread_ts, text=text or f"message {ts}", user=user, subtype=subtype)


def intermediate_post(create_at: int, message: str = "msg", user: str = "john.doe") -> IntermediatePost:
    """Create a transformed post"""
    return IntermediatePost(user=user, channel="engineering", message=message, create_at=create_at)


def write_export_zip(
    path: Path,
    channels: Optional[List[Dict[str, Any]]] = None,
    groups: Optional[List[Dict[str, Any]]] = None,
    mpims: Optional[List[Dict[str, Any]]] = None,
    dms: Optional[List[Dict[str, Any]]] = None,
    users: Optional[List[Dict[str, Any]]] = None,
    posts: Optional[Dict[str, List[Dict[str, Any]]]] = None,
    uploads: Optional[Dict[str, bytes]] = None,
) -> Path:
    """Write a Slack export zip archive

    Args:
        posts: channel directory -> list of raw message dicts
        uploads: "<file-id>/<name>" -> file content
    """
    with zipfile.ZipFile(path, "w") as archive:
        archive.writestr("channels.json", json.dumps(channels or []))
        archive.writestr("groups.json", json.dumps(groups or []))
        archive.writestr("mpims.json", json.dumps(mpims or []))
        archive.writestr("dms.json", json.dumps(dms or []))
        archive.writestr("users.json", json.dumps(users or []))
        for channel_dir, messages in (posts or {}).items():
            archive.writestr(f"{channel_dir}/2023-10-18.json", json.dumps(messages))
        for upload_path, content in (uploads or {}).items():
            archive.writestr(f"__uploads/{upload_path}", content)
    return path


def sample_export_zip(path: Path) -> Path:
    """Export with one public channel, one DM, a thread and a shared file"""
    users = [
        {"id": "U001", "name": "john.doe", "profile": {"first_name": "John", "last_name": "Doe", "email": "john@example.com"}},
        {"id": "U002", "name": "jane.smith", "profile": {"first_name": "Jane", "last_name": "Smith", "email": "jane@example.com"}},
    ]
    channels = [
        {"id": "C001", "name": "engineering", "members": ["U001", "U002"],
         "purpose": {"value": "Build things"}, "topic": {"value": "Deploys"}},
    ]
    dms = [{"id": "D001", "members": ["U001", "U002"]}]
    posts = {
        "engineering": [
            {"type": "message", "user": "U002", "text": "Reply from <@U001>", "ts": "1697654400.000200", "thread_ts": "1697654321.000100"},
            {"type": "message", "user": "U001", "text": "*Deploy* starts now", "ts": "1697654321.000100", "thread_ts": "1697654321.000100"},
            {"type": "message", "subtype": "channel_join", "user": "U002", "text": "joined", "ts": "1697654000.000000"},
            {"type": "message", "subtype": "file_share", "user": "U001", "text": "logs", "ts": "1697654500.000000",
             "files": [{"id": "F001", "name": "deploy.log"}]},
        ],
        "D001": [
            {"type": "message", "user": "U001", "text": "hi", "ts": "1697654600.000000"},
        ],
    }
    uploads = {"F001/deploy.log": b"deploy ok\n"}
    return write_export_zip(path, channels=channels, dms=dms, users=users, posts=posts, uploads=uploads)
