"""Conversion helpers shared by the Slack transformers"""

import logging
import re
from typing import Tuple

logger = logging.getLogger(__name__)

VALID_CHANNEL_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9\-_]+$")


def convert_slack_timestamp(ts: str) -> int:
    """Convert a Slack timestamp to epoch milliseconds

    Only the seconds part is kept, so messages sent within the same second
    share a creation time until the thread reconstructor separates them.

    Args:
        ts: Slack timestamp string (e.g., "1697654321.123456")

    Returns:
        Milliseconds since epoch (e.g., 1697654321000), or 1 when the
        timestamp cannot be parsed

    Example:
        >>> convert_slack_timestamp("1697654321.123456")
        1697654321000
    """
    seconds = (ts or "").split(".", 1)[0]
    try:
        return int(seconds) * 1000
    except ValueError:
        logger.warning(f"Bad timestamp detected: {ts!r}")
        return 1


def slack_timestamp_sort_key(ts: str) -> Tuple[int, float]:
    """Sort key ordering posts by converted time, then sub-second precision"""
    try:
        precise = float(ts)
    except (TypeError, ValueError):
        precise = 0.0
    return convert_slack_timestamp(ts), precise


def is_valid_channel_name_characters(name: str) -> bool:
    return bool(VALID_CHANNEL_NAME_PATTERN.match(name))


def convert_channel_name(channel_name: str, channel_id: str) -> str:
    """Build a Mattermost channel handle from a Slack channel name

    Example:
        >>> convert_channel_name("_Engineering-", "C123")
        'engineering'
        >>> convert_channel_name("café", "C123")
        'c123'
    """
    new_name = channel_name.strip("_-")
    if len(new_name) == 1:
        return "slack-channel-" + new_name

    if is_valid_channel_name_characters(new_name):
        return new_name.lower()
    elif channel_id:
        return channel_id.lower()

    return "invalid-channel-name"


def truncate_runes(value: str, limit: int) -> str:
    """Truncate a string to at most ``limit`` characters"""
    if len(value) <= limit:
        return value
    return value[:limit]
