from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from herald_v1.models import EmoteRef
from herald_v1.services.logger_service import LoggerService
from herald_v1.utils.files import read_text
from herald_v1.utils.text_utils import codepoints_to_text

NO_UNICODE_MARKER = "X"


@dataclass(frozen=True)
class GuildEmotes:
    guild_id: int
    custom: tuple[EmoteRef, ...]

    def find_custom(self, name: str) -> EmoteRef | None:
        for emote in self.custom:
            if emote.name == name:
                return emote
        return None


def parse_standard_emotes(text: str) -> dict[str, EmoteRef]:
    """Parse `name,codepointHex` rows, skipping rows marked `X` or malformed."""

    table: dict[str, EmoteRef] = {}
    for raw_line in text.splitlines():
        parts = raw_line.strip().split(",")
        if len(parts) < 2:
            continue
        name = parts[0].strip()
        codepoints = parts[1].strip()
        if not name or not codepoints or codepoints == NO_UNICODE_MARKER:
            continue
        try:
            rendered = codepoints_to_text(codepoints)
        except ValueError:
            continue
        table.setdefault(name, EmoteRef(name=name, key=rendered, custom=False))
    return table


class EmoteCatalog:
    """
    Read-through cache of emotes shared by the role and join services.

    The standard table is read from disk once per process. Guild custom emotes
    are fetched from the transport the first time a guild is asked for and
    kept until `refresh` is called for that guild.
    """

    def __init__(self, standard_path: Path, transport: Any, logger: LoggerService) -> None:
        self.standard_path = standard_path
        self.transport = transport
        self.logger = logger
        self._standard: dict[str, EmoteRef] | None = None
        self._guilds: dict[int, GuildEmotes] = {}

    async def standard(self) -> dict[str, EmoteRef]:
        if self._standard is None:
            if self.standard_path.exists():
                self._standard = parse_standard_emotes(await read_text(self.standard_path))
                self.logger.log("emotes.standard_loaded", count=len(self._standard))
            else:
                self.logger.warn("emotes.standard_missing", path=str(self.standard_path))
                self._standard = {}
        return self._standard

    async def guild(self, guild_id: int) -> GuildEmotes:
        cached = self._guilds.get(guild_id)
        if cached is not None:
            return cached
        emotes = tuple(await self.transport.list_emotes(guild_id))
        entry = GuildEmotes(guild_id=guild_id, custom=emotes)
        self._guilds[guild_id] = entry
        return entry

    async def refresh(self, guild_id: int) -> GuildEmotes:
        self._guilds.pop(guild_id, None)
        return await self.guild(guild_id)

    async def resolve(self, guild_id: int, name: str) -> EmoteRef | None:
        """Guild custom emotes first, then the standard table."""

        found = (await self.guild(guild_id)).find_custom(name)
        if found is not None:
            return found
        return (await self.standard()).get(name)
