from __future__ import annotations

import random
from typing import Any

from herald_v1.config import Settings
from herald_v1.errors import ConfigurationError
from herald_v1.models import EmoteRef
from herald_v1.services.emote_service import EmoteCatalog
from herald_v1.services.logger_service import LoggerService
from herald_v1.storage import MessagePackStore
from herald_v1.utils.files import read_text

MENTION_MARKER = "\\0"
RANDOM_EMOTE_MARKER = "\\r"


def render_join_message(template: str, mention: str, emotes: tuple[EmoteRef, ...], rng: random.Random) -> str:
    text = template.replace(MENTION_MARKER, mention)
    parts: list[str] = []
    position = 0
    while True:
        found = text.find(RANDOM_EMOTE_MARKER, position)
        if found < 0:
            parts.append(text[position:])
            break
        parts.append(text[position:found])
        if emotes:
            parts.append(str(rng.choice(emotes)))
        position = found + len(RANDOM_EMOTE_MARKER)
    return "".join(parts)


class JoinService:
    def __init__(
        self,
        guild_id: int,
        channel_id: int,
        bot_user_id: int,
        settings: Settings,
        transport: Any,
        emotes: EmoteCatalog,
        store: MessagePackStore,
        logger: LoggerService,
        *,
        rng: random.Random | None = None,
    ) -> None:
        self.guild_id = guild_id
        self.channel_id = channel_id
        self.bot_user_id = bot_user_id
        self.path = settings.join_path
        self.transport = transport
        self.emotes = emotes
        self.store = store
        self.logger = logger
        self.template: str | None = None
        self._rng = rng or random.Random()

    @property
    def enabled(self) -> bool:
        return self.template is not None

    async def load(self) -> bool:
        if not self.path.exists():
            self.logger.warn("join.template_missing", path=str(self.path))
            return False
        try:
            template = await read_text(self.path)
        except (OSError, ConfigurationError) as exc:
            self.logger.error("join.load_failed", path=str(self.path), error=str(exc)[:300])
            return False
        await self.emotes.refresh(self.guild_id)
        self.template = template
        self.logger.log("join.loaded", chars=len(template))
        return True

    async def render(self, mention: str) -> str:
        if self.template is None:
            raise ConfigurationError("join template is not loaded")
        guild_emotes = await self.emotes.guild(self.guild_id)
        return render_join_message(self.template, mention, guild_emotes.custom, self._rng)

    async def on_member_join(self, guild_id: int, user_id: int, mention: str, is_bot: bool) -> bool:
        if self.template is None:
            return False
        if guild_id != self.guild_id or is_bot or user_id == self.bot_user_id:
            return False
        text = await self.render(mention)
        await self.transport.send_message(self.channel_id, text)
        self.store.bump("joins_greeted")
        self.logger.log("join.greeted", user_id=user_id)
        return True
