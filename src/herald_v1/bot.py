from __future__ import annotations

import asyncio

import discord

from herald_v1.config import Settings
from herald_v1.models import Invocation, ReactionEvent
from herald_v1.services.command_service import CommandService
from herald_v1.services.emote_service import EmoteCatalog
from herald_v1.services.join_service import JoinService
from herald_v1.services.logger_service import LoggerService
from herald_v1.services.rate_limiter import RateLimiter, ThrottledTransport
from herald_v1.services.role_service import RoleService
from herald_v1.storage import MessagePackStore
from herald_v1.transport import DiscordTransport
from herald_v1.utils.discord_utils import find_guild, find_text_channel, is_admin
from herald_v1.utils.retry import RetryPolicy, retry_lookup

STARTUP_LOOKUP_POLICY = RetryPolicy(attempts=3, delay_sec=4.0)


class HeraldBot(discord.Client):
    def __init__(self, settings: Settings) -> None:
        intents = discord.Intents.default()
        intents.guilds = True
        intents.members = True
        intents.messages = True
        intents.message_content = True
        intents.reactions = True
        self.limiter = RateLimiter()
        super().__init__(intents=intents, http_trace=self.limiter.trace_config())
        self.settings = settings
        self.store = MessagePackStore(settings.store_path)
        self.logger = LoggerService(self.store)
        self.transport = ThrottledTransport(DiscordTransport(self, self.logger), self.limiter)
        self.emotes = EmoteCatalog(settings.emotes_path, self.transport, self.logger)
        self.command_service: CommandService | None = None
        self.roles: RoleService | None = None
        self.joins: JoinService | None = None
        self._autosave_task: asyncio.Task | None = None
        self._ready_once = False

    async def setup_hook(self) -> None:
        await self.store.load()
        self._autosave_task = asyncio.create_task(self.store.autosave_loop(), name="msgpack-autosave")
        if not self.settings.command_enabled:
            return
        service = CommandService(self.settings, self.transport, self.store, self.logger)
        if await service.load():
            self.command_service = service
            self.logger.log("commands.ready", commands=len(service.table))
        else:
            self.logger.warn("commands.disabled")

    async def close(self) -> None:
        if self.store.dirty:
            await self.store.save()
        await super().close()

    async def on_ready(self) -> None:
        if self._ready_once:
            return
        self._ready_once = True
        self.logger.log("bot.ready", user_id=self.user.id if self.user else None, guilds=len(self.guilds))
        if self.settings.role_enabled:
            await self._setup_roles()
        if self.settings.join_enabled:
            await self._setup_join()
        print(f"Connected as {self.user} ({self.user.id if self.user else '?'})")

    async def _resolve_home(self, component: str, guild_name: str, channel_name: str) -> tuple[int, int] | None:
        def note_retry(attempt: int) -> None:
            self.logger.warn(f"{component}.lookup_retry", attempt=attempt, guild=guild_name)

        guild = await retry_lookup(lambda: find_guild(self, guild_name), STARTUP_LOOKUP_POLICY, on_retry=note_retry)
        if guild is None:
            self.logger.warn(f"{component}.guild_not_found", guild=guild_name)
            return None
        channel = find_text_channel(guild, channel_name)
        if channel is None:
            self.logger.warn(f"{component}.channel_not_found", guild=guild_name, channel=channel_name)
            return None
        return guild.id, channel.id

    async def _setup_roles(self) -> None:
        home = await self._resolve_home("roles", self.settings.role_guild, self.settings.role_channel)
        if home is None or self.user is None:
            self.logger.warn("roles.disabled")
            return
        guild_id, channel_id = home
        self.roles = RoleService(
            guild_id, channel_id, self.user.id, self.settings, self.transport, self.emotes, self.store, self.logger
        )
        if self.command_service is not None:
            self.command_service.set_reloader("roles", self.roles.load)
        if await self.roles.load():
            self.logger.log("roles.ready", message_id=self.roles.message_id)
        else:
            self.logger.warn("roles.not_ready")

    async def _setup_join(self) -> None:
        home = await self._resolve_home("join", self.settings.join_guild, self.settings.join_channel)
        if home is None or self.user is None:
            self.logger.warn("join.disabled")
            return
        guild_id, channel_id = home
        self.joins = JoinService(
            guild_id, channel_id, self.user.id, self.settings, self.transport, self.emotes, self.store, self.logger
        )
        if self.command_service is not None:
            self.command_service.set_reloader("join", self.joins.load)
        if await self.joins.load():
            self.logger.log("join.ready")
        else:
            self.logger.warn("join.not_ready")

    async def on_message(self, message: discord.Message) -> None:
        if self.command_service is None or message.guild is None:
            return
        if message.author.bot or (self.user is not None and message.author.id == self.user.id):
            return
        if not message.content.startswith(self.settings.bot_trigger):
            return
        invocation = Invocation(
            guild_id=message.guild.id,
            channel_id=message.channel.id,
            message_id=message.id,
            author_id=message.author.id,
            author_name=message.author.display_name,
            content=message.content,
            is_admin=is_admin(message.author),
        )
        await self.command_service.handle(invocation)

    def _reaction_event(self, payload: discord.RawReactionActionEvent) -> ReactionEvent:
        return ReactionEvent(
            guild_id=payload.guild_id or 0,
            channel_id=payload.channel_id,
            message_id=payload.message_id,
            user_id=payload.user_id,
            emote_key=str(payload.emoji),
        )

    async def on_raw_reaction_add(self, payload: discord.RawReactionActionEvent) -> None:
        if self.roles is None:
            return
        await self.roles.on_reaction_added(self._reaction_event(payload))

    async def on_raw_reaction_remove(self, payload: discord.RawReactionActionEvent) -> None:
        if self.roles is None:
            return
        await self.roles.on_reaction_removed(self._reaction_event(payload))

    async def on_member_join(self, member: discord.Member) -> None:
        if self.joins is None:
            return
        await self.joins.on_member_join(member.guild.id, member.id, member.mention, member.bot)


def main() -> None:
    settings = Settings.load()
    bot = HeraldBot(settings)
    bot.run(settings.discord_token)
