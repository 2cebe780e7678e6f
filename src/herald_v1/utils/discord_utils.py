from __future__ import annotations

import discord


async def get_member(guild: discord.Guild, user_id: int) -> discord.Member | None:
    """
    Resolve a guild member by id.

    The member cache can be cold depending on intents and how long the client
    has been connected; this helper tries the cache and then falls back to an
    API fetch.
    """

    cached = guild.get_member(user_id)
    if cached is not None:
        return cached
    try:
        return await guild.fetch_member(user_id)
    except discord.NotFound:
        return None


def is_admin(user: discord.abc.User | discord.Member) -> bool:
    if not isinstance(user, discord.Member):
        return False
    return bool(user.guild_permissions.administrator)


def find_guild(client: discord.Client, name: str) -> discord.Guild | None:
    return discord.utils.get(client.guilds, name=name)


def find_text_channel(guild: discord.Guild, name: str) -> discord.TextChannel | None:
    return discord.utils.get(guild.text_channels, name=name)
