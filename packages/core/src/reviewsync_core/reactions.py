"""Merging remote thread metadata (resolution, reactions) into local records.

Reactions are merged with a source-tagged union. Users who reacted on the
remote host are stored locally as ``github-<login>``; everyone else is a
local-only user. On each merge the remote-tagged portion of an emoji is
replaced wholesale by what the remote reports now, so remote removals
propagate, while local-only users are never touched.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from reviewsync_store.models import STATUS_ACTIVE, STATUS_RESOLVED

if TYPE_CHECKING:
    from reviewsync_core.models import ThreadInfo
    from reviewsync_store.models import Comment

logger = logging.getLogger(__name__)

REMOTE_USER_PREFIX = "github-"

# The remote host supports exactly eight reaction types.
_EMOJI_TO_GITHUB = {
    "\U0001f44d": "+1",  # 👍
    "\U0001f44e": "-1",  # 👎
    "\U0001f604": "laugh",  # 😄
    "\U0001f615": "confused",  # 😕
    "\u2764\ufe0f": "heart",  # ❤️
    "\u2764": "heart",  # ❤ without the variation selector
    "\U0001f389": "hooray",  # 🎉
    "\U0001f680": "rocket",  # 🚀
    "\U0001f440": "eyes",  # 👀
}

_GITHUB_TO_EMOJI = {
    "+1": "\U0001f44d",
    "-1": "\U0001f44e",
    "laugh": "\U0001f604",
    "confused": "\U0001f615",
    "heart": "\u2764\ufe0f",
    "hooray": "\U0001f389",
    "rocket": "\U0001f680",
    "eyes": "\U0001f440",
}


def emoji_to_github_reaction(emoji: str) -> str | None:
    """Return the remote reaction type for an emoji, or None if unsupported."""
    return _EMOJI_TO_GITHUB.get(emoji)


def github_reaction_to_emoji(reaction: str) -> str | None:
    return _GITHUB_TO_EMOJI.get(reaction)


def normalize_emoji(emoji: str) -> str:
    """Return the canonical form of a supported emoji so local and remote reactions share a key."""
    reaction = _EMOJI_TO_GITHUB.get(emoji)
    return _GITHUB_TO_EMOJI[reaction] if reaction else emoji


def remote_user_id(login: str) -> str:
    return f"{REMOTE_USER_PREFIX}{login}"


def is_remote_user(uid: str) -> bool:
    return uid.startswith(REMOTE_USER_PREFIX)


def merge_reactions(local: dict[str, list[str]], remote_users: dict[str, list[str]]) -> dict[str, list[str]]:
    """Union local-only users with the current remote users, per emoji.

    Every emoji that the remote reports, or that locally still holds
    remote-tagged users, is recomputed. Emoji with only local users are kept
    as they are. Emoji left without users are dropped.
    """
    merged = {emoji: list(users) for emoji, users in local.items()}
    touched = set(remote_users) | {e for e, users in local.items() if any(is_remote_user(u) for u in users)}
    for emoji in touched:
        users = [u for u in local.get(emoji, []) if not is_remote_user(u)]
        for uid in remote_users.get(emoji, []):
            if uid not in users:
                users.append(uid)
        merged[emoji] = users
    return {emoji: users for emoji, users in merged.items() if users}


def merge_thread_metadata(local: Comment, info: ThreadInfo) -> dict:
    """Compute the partial update that brings ``local`` in line with remote thread state.

    Remote is authoritative for resolution. Returns an empty dict when
    nothing would change, so callers can skip the write entirely.
    """
    update: dict = {}

    if info.is_resolved != (local.status == STATUS_RESOLVED):
        update["status"] = STATUS_RESOLVED if info.is_resolved else STATUS_ACTIVE

    if info.thread_id and info.thread_id != local.remote_thread_id:
        update["remote_thread_id"] = info.thread_id

    remote_users: dict[str, list[str]] = {}
    for reaction in info.reactions:
        emoji = github_reaction_to_emoji(reaction.content)
        if emoji is None or not reaction.user_login:
            logger.debug("Ignoring unsupported reaction %r", reaction.content)
            continue
        users = remote_users.setdefault(emoji, [])
        uid = remote_user_id(reaction.user_login)
        if uid not in users:
            users.append(uid)

    merged = merge_reactions(local.reactions, remote_users)
    if _normalized(merged) != _normalized(local.reactions):
        update["reactions"] = merged

    return update


def toggle_user_reaction(reactions: dict[str, list[str]], emoji: str, uid: str) -> dict[str, list[str]]:
    """Add ``uid`` to ``emoji`` or remove it if already present.

    Supported emoji are stored under their canonical form, the same key the
    merge uses for remote reactions.
    """
    emoji = normalize_emoji(emoji)
    result = {e: list(users) for e, users in reactions.items()}
    users = result.get(emoji, [])
    if uid in users:
        users = [u for u in users if u != uid]
    else:
        users = users + [uid]
    if users:
        result[emoji] = users
    else:
        result.pop(emoji, None)
    return result


def _normalized(reactions: dict[str, list[str]]) -> dict[str, frozenset[str]]:
    return {emoji: frozenset(users) for emoji, users in reactions.items() if users}
