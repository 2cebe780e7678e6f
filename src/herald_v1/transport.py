from __future__ import annotations

import discord

from herald_v1.models import Card, EmoteRef, PostedMessage, RoleRef
from herald_v1.services.logger_service import LoggerService
from herald_v1.utils.discord_utils import get_member

SECONDS_PER_DAY = 86400


def build_embed(card: Card) -> discord.Embed:
    embed = discord.Embed(title=card.title, description=card.description)
    if card.footer:
        embed.set_footer(text=card.footer)
    if card.image_url:
        embed.set_image(url=card.image_url)
    return embed


def posted_from(message: discord.Message) -> PostedMessage:
    keys = frozenset(str(reaction.emoji) for reaction in message.reactions if reaction.me)
    return PostedMessage(id=message.id, channel_id=message.channel.id, reaction_keys=keys)


class DiscordTransport:
    """Outbound operations the core needs, expressed in plain ids and records."""

    def __init__(self, client: discord.Client, logger: LoggerService) -> None:
        self.client = client
        self.logger = logger

    async def _channel(self, channel_id: int) -> discord.TextChannel | discord.Thread:
        channel = self.client.get_channel(channel_id)
        if channel is None:
            channel = await self.client.fetch_channel(channel_id)
        if not isinstance(channel, (discord.TextChannel, discord.Thread)):
            raise RuntimeError(f"Channel {channel_id} is not a text channel.")
        return channel

    def _guild(self, guild_id: int) -> discord.Guild:
        guild = self.client.get_guild(guild_id)
        if guild is None:
            raise RuntimeError(f"Guild {guild_id} is not available to this client.")
        return guild

    async def send_message(self, channel_id: int, text: str) -> PostedMessage:
        channel = await self._channel(channel_id)
        sent = await channel.send(text)
        return posted_from(sent)

    async def send_card(self, channel_id: int, card: Card) -> PostedMessage:
        channel = await self._channel(channel_id)
        try:
            sent = await channel.send(embed=build_embed(card))
        except discord.HTTPException as exc:
            if exc.status != 400 or not card.image_url:
                raise
            self.logger.warn("transport.image_rejected", channel_id=channel_id, url=card.image_url[:200])
            plain = Card(title=card.title, description=card.description, footer=card.footer)
            sent = await channel.send(embed=build_embed(plain))
        return posted_from(sent)

    async def send_direct(self, user_id: int, text: str) -> bool:
        user = self.client.get_user(user_id)
        try:
            if user is None:
                user = await self.client.fetch_user(user_id)
            await user.send(text)
        except (discord.NotFound, discord.Forbidden) as exc:
            self.logger.warn("transport.dm_failed", user_id=user_id, error=str(exc)[:200])
            return False
        return True

    async def delete_message(self, channel_id: int, message_id: int) -> None:
        channel = await self._channel(channel_id)
        try:
            await channel.get_partial_message(message_id).delete()
        except discord.NotFound:
            self.logger.warn("transport.delete_missing", channel_id=channel_id, message_id=message_id)

    async def history_before(self, channel_id: int, message_id: int, limit: int) -> list[int]:
        if limit <= 0:
            return []
        channel = await self._channel(channel_id)
        return [message.id async for message in channel.history(limit=limit, before=discord.Object(id=message_id))]

    async def add_reaction(self, channel_id: int, message_id: int, emote_key: str) -> None:
        channel = await self._channel(channel_id)
        await channel.get_partial_message(message_id).add_reaction(emote_key)

    async def edit_card(self, channel_id: int, message_id: int, card: Card) -> None:
        channel = await self._channel(channel_id)
        await channel.get_partial_message(message_id).edit(embed=build_embed(card))

    async def fetch_message(self, channel_id: int, message_id: int) -> PostedMessage | None:
        channel = await self._channel(channel_id)
        try:
            message = await channel.fetch_message(message_id)
        except discord.NotFound:
            return None
        return posted_from(message)

    async def list_roles(self, guild_id: int) -> list[RoleRef]:
        return [RoleRef(id=role.id, name=role.name) for role in self._guild(guild_id).roles]

    async def list_emotes(self, guild_id: int) -> list[EmoteRef]:
        return [EmoteRef(name=emoji.name, key=str(emoji), custom=True) for emoji in self._guild(guild_id).emojis]

    async def grant_role(self, guild_id: int, user_id: int, role_id: int) -> bool:
        member = await get_member(self._guild(guild_id), user_id)
        if member is None:
            return False
        await member.add_roles(discord.Object(id=role_id), reason="Role message reaction")
        return True

    async def revoke_role(self, guild_id: int, user_id: int, role_id: int) -> bool:
        member = await get_member(self._guild(guild_id), user_id)
        if member is None:
            return False
        await member.remove_roles(discord.Object(id=role_id), reason="Role message reaction removed")
        return True

    async def kick(self, guild_id: int, user_id: int, *, reason: str) -> None:
        await self._guild(guild_id).kick(discord.Object(id=user_id), reason=reason)

    async def ban(self, guild_id: int, user_id: int, *, delete_days: int = 0, reason: str) -> None:
        await self._guild(guild_id).ban(
            discord.Object(id=user_id),
            reason=reason,
            delete_message_seconds=delete_days * SECONDS_PER_DAY,
        )

    async def unban(self, guild_id: int, user_id: int, *, reason: str) -> None:
        await self._guild(guild_id).unban(discord.Object(id=user_id), reason=reason)
