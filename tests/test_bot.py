from __future__ import annotations

import asyncio
from pathlib import Path
from types import SimpleNamespace

from herald_v1.bot import HeraldBot
from herald_v1.models import Invocation, ReactionEvent
from stubs import make_settings


class RecordingCommands:
    def __init__(self) -> None:
        self.seen: list[Invocation] = []

    async def handle(self, invocation: Invocation) -> None:
        self.seen.append(invocation)


class RecordingRoles:
    def __init__(self) -> None:
        self.added: list[ReactionEvent] = []
        self.removed: list[ReactionEvent] = []

    async def on_reaction_added(self, event: ReactionEvent) -> bool:
        self.added.append(event)
        return True

    async def on_reaction_removed(self, event: ReactionEvent) -> bool:
        self.removed.append(event)
        return True


def _message(content: str, *, bot: bool = False, guild: bool = True) -> SimpleNamespace:
    author = SimpleNamespace(id=77, bot=bot, display_name="Alice")
    return SimpleNamespace(
        id=900,
        content=content,
        author=author,
        guild=SimpleNamespace(id=100) if guild else None,
        channel=SimpleNamespace(id=300),
    )


def _make_bot(tmp_path: Path) -> HeraldBot:
    bot = HeraldBot(make_settings(tmp_path))
    asyncio.run(bot.store.load())
    return bot


def test_on_message_builds_invocation_for_trigger(tmp_path: Path) -> None:
    bot = _make_bot(tmp_path)
    commands = RecordingCommands()
    bot.command_service = commands  # type: ignore[assignment]

    asyncio.run(bot.on_message(_message("!bot poll a b")))

    assert commands.seen == [
        Invocation(
            guild_id=100,
            channel_id=300,
            message_id=900,
            author_id=77,
            author_name="Alice",
            content="!bot poll a b",
            is_admin=False,
        )
    ]


def test_on_message_ignores_bots_dms_and_plain_chat(tmp_path: Path) -> None:
    bot = _make_bot(tmp_path)
    commands = RecordingCommands()
    bot.command_service = commands  # type: ignore[assignment]

    asyncio.run(bot.on_message(_message("!bot help", bot=True)))
    asyncio.run(bot.on_message(_message("!bot help", guild=False)))
    asyncio.run(bot.on_message(_message("hello there")))

    assert commands.seen == []


def test_raw_reactions_are_forwarded_to_roles(tmp_path: Path) -> None:
    bot = _make_bot(tmp_path)
    roles = RecordingRoles()
    bot.roles = roles  # type: ignore[assignment]
    payload = SimpleNamespace(guild_id=100, channel_id=200, message_id=5001, user_id=42, emoji="\U0001F44D")

    asyncio.run(bot.on_raw_reaction_add(payload))
    asyncio.run(bot.on_raw_reaction_remove(payload))

    expected = ReactionEvent(guild_id=100, channel_id=200, message_id=5001, user_id=42, emote_key="\U0001F44D")
    assert roles.added == [expected]
    assert roles.removed == [expected]


def test_events_without_services_are_noops(tmp_path: Path) -> None:
    bot = _make_bot(tmp_path)
    payload = SimpleNamespace(guild_id=100, channel_id=200, message_id=1, user_id=42, emoji="x")
    asyncio.run(bot.on_message(_message("!bot help")))
    asyncio.run(bot.on_raw_reaction_add(payload))
    member = SimpleNamespace(guild=SimpleNamespace(id=100), id=55, mention="<@55>", bot=False)
    asyncio.run(bot.on_member_join(member))
