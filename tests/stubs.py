from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Any

from herald_v1.config import Settings
from herald_v1.models import Card, EmoteRef, PostedMessage, RoleRef


def make_settings(tmp_path: Path, *, trigger: str = "!bot") -> Settings:
    data_dir = tmp_path / "data"
    data_dir.mkdir(parents=True, exist_ok=True)
    return Settings(
        discord_token="token",
        bot_trigger=trigger,
        command_enabled=True,
        role_enabled=True,
        role_guild="Home",
        role_channel="roles",
        join_enabled=True,
        join_guild="Home",
        join_channel="welcome",
        data_dir=data_dir,
        store_path=tmp_path / "state.msgpack",
    )


class StubTransport:
    """In-memory transport that records every outbound call in order."""

    def __init__(
        self,
        *,
        roles: list[RoleRef] | None = None,
        emotes: list[EmoteRef] | None = None,
        history: list[int] | None = None,
        members: set[int] | None = None,
    ) -> None:
        self.calls: list[tuple[Any, ...]] = []
        self.roles = list(roles or [])
        self.emotes = list(emotes or [])
        self.history = list(history or [])
        self.members = members
        self.messages: dict[int, PostedMessage] = {}
        self.dm_ok = True
        self._next_id = 5000

    def names(self) -> list[str]:
        return [call[0] for call in self.calls]

    def calls_named(self, name: str) -> list[tuple[Any, ...]]:
        return [call for call in self.calls if call[0] == name]

    def _post(self, channel_id: int) -> PostedMessage:
        self._next_id += 1
        message = PostedMessage(id=self._next_id, channel_id=channel_id)
        self.messages[message.id] = message
        return message

    async def send_message(self, channel_id: int, text: str) -> PostedMessage:
        self.calls.append(("send_message", channel_id, text))
        return self._post(channel_id)

    async def send_card(self, channel_id: int, card: Card) -> PostedMessage:
        self.calls.append(("send_card", channel_id, card))
        return self._post(channel_id)

    async def send_direct(self, user_id: int, text: str) -> bool:
        self.calls.append(("send_direct", user_id, text))
        return self.dm_ok

    async def delete_message(self, channel_id: int, message_id: int) -> None:
        self.calls.append(("delete_message", channel_id, message_id))
        self.messages.pop(message_id, None)

    async def history_before(self, channel_id: int, message_id: int, limit: int) -> list[int]:
        self.calls.append(("history_before", channel_id, message_id, limit))
        return self.history[:limit]

    async def add_reaction(self, channel_id: int, message_id: int, emote_key: str) -> None:
        self.calls.append(("add_reaction", channel_id, message_id, emote_key))
        message = self.messages.get(message_id)
        if message is not None:
            self.messages[message_id] = replace(message, reaction_keys=message.reaction_keys | {emote_key})

    async def edit_card(self, channel_id: int, message_id: int, card: Card) -> None:
        self.calls.append(("edit_card", channel_id, message_id, card))

    async def fetch_message(self, channel_id: int, message_id: int) -> PostedMessage | None:
        self.calls.append(("fetch_message", channel_id, message_id))
        return self.messages.get(message_id)

    async def list_roles(self, guild_id: int) -> list[RoleRef]:
        return list(self.roles)

    async def list_emotes(self, guild_id: int) -> list[EmoteRef]:
        self.calls.append(("list_emotes", guild_id))
        return list(self.emotes)

    async def grant_role(self, guild_id: int, user_id: int, role_id: int) -> bool:
        self.calls.append(("grant_role", guild_id, user_id, role_id))
        return self.members is None or user_id in self.members

    async def revoke_role(self, guild_id: int, user_id: int, role_id: int) -> bool:
        self.calls.append(("revoke_role", guild_id, user_id, role_id))
        return self.members is None or user_id in self.members

    async def kick(self, guild_id: int, user_id: int, *, reason: str) -> None:
        self.calls.append(("kick", guild_id, user_id))

    async def ban(self, guild_id: int, user_id: int, *, delete_days: int = 0, reason: str) -> None:
        self.calls.append(("ban", guild_id, user_id, delete_days))

    async def unban(self, guild_id: int, user_id: int, *, reason: str) -> None:
        self.calls.append(("unban", guild_id, user_id))
