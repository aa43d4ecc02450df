"""Convert Slack message markup into Mattermost markdown

Slack wraps mentions and links in angle brackets (``<@U123>``,
``<#C123|general>``, ``<https://example.com|label>``) and uses single
characters for emphasis. Mattermost expects plain ``@username`` / ``~channel``
mentions and standard markdown.
"""

import re
from typing import Dict, Optional

TOKEN_PATTERN = re.compile(r"(<[^<>\n]*>)")
USER_MENTION_PATTERN = re.compile(r"^<@([UW][A-Z0-9]+)(?:\|([^>]*))?>$")
CHANNEL_MENTION_PATTERN = re.compile(r"^<#(C[A-Z0-9]+)(?:\|([^>]*))?>$")
SPECIAL_MENTION_PATTERN = re.compile(r"^<!(channel|here|everyone)(?:\|[^>]*)?>$")
LINK_PATTERN = re.compile(r"^<((?:https?|mailto|ftp):[^|>]+)(?:\|([^>]*))?>$")

BOLD_PATTERN = re.compile(r"(?<![\w*])\*(?!\s)([^*\n]+?)(?<!\s)\*(?![\w*])")
STRIKE_PATTERN = re.compile(r"(?<![\w~])~(?!\s)([^~\n]+?)(?<!\s)~(?![\w~])")

SPECIAL_MENTIONS = {
    "channel": "@channel",
    "here": "@here",
    "everyone": "@all",
}


def convert_markup(text: str) -> str:
    """Convert Slack emphasis to markdown (``*bold*`` and ``~strike~``)"""
    text = BOLD_PATTERN.sub(r"**\1**", text)
    return STRIKE_PATTERN.sub(r"~~\1~~", text)


def convert_token(
    token: str,
    usernames: Dict[str, str],
    channel_names: Dict[str, str],
) -> str:
    """Convert a single ``<...>`` token, leaving unknown tokens untouched"""
    match = USER_MENTION_PATTERN.match(token)
    if match:
        username = usernames.get(match.group(1))
        return f"@{username}" if username else token

    match = CHANNEL_MENTION_PATTERN.match(token)
    if match:
        name = channel_names.get(match.group(1)) or match.group(2)
        return f"~{name}" if name else token

    match = SPECIAL_MENTION_PATTERN.match(token)
    if match:
        return SPECIAL_MENTIONS[match.group(1)]

    match = LINK_PATTERN.match(token)
    if match:
        url, label = match.group(1), match.group(2)
        if url.startswith("mailto:"):
            return label or url[len("mailto:"):]
        return f"[{label}]({url})" if label else url

    return token


def convert_post_text(
    text: str,
    usernames: Optional[Dict[str, str]] = None,
    channel_names: Optional[Dict[str, str]] = None,
) -> str:
    """Convert a Slack message body to Mattermost markdown

    Args:
        text: Raw Slack message text
        usernames: Slack user id -> username
        channel_names: Slack channel id -> channel name

    Returns:
        Converted text

    Example:
        >>> convert_post_text("*hi* <@U1>, see <#C1|general>", {"U1": "jane"})
        '**hi** @jane, see ~general'
    """
    if not text:
        return text

    usernames = usernames or {}
    channel_names = channel_names or {}

    parts = []
    for part in TOKEN_PATTERN.split(text):
        if TOKEN_PATTERN.fullmatch(part):
            parts.append(convert_token(part, usernames, channel_names))
        else:
            parts.append(convert_markup(part))
    return "".join(parts)
