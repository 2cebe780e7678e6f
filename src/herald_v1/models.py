from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class RoleRef:
    id: int
    name: str


@dataclass(frozen=True)
class EmoteRef:
    """
    An emote as the core sees it.

    `key` is the exact text the platform renders for the emote and reports on
    reaction events (`<:name:id>` for guild emotes, the characters themselves
    for standard ones), so it doubles as the match key for reaction routing.
    """

    name: str
    key: str
    custom: bool = False

    def __str__(self) -> str:
        return self.key


@dataclass(frozen=True)
class Card:
    title: str | None = None
    description: str | None = None
    footer: str | None = None
    image_url: str | None = None


@dataclass(frozen=True)
class PostedMessage:
    id: int
    channel_id: int
    reaction_keys: frozenset[str] = frozenset()


@dataclass(frozen=True)
class Invocation:
    guild_id: int
    channel_id: int
    message_id: int
    author_id: int
    author_name: str
    content: str
    is_admin: bool

    @property
    def tokens(self) -> list[str]:
        return self.content.split(" ")


@dataclass(frozen=True)
class ReactionEvent:
    guild_id: int
    channel_id: int
    message_id: int
    user_id: int
    emote_key: str
