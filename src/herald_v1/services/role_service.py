from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any

from herald_v1.config import Settings
from herald_v1.errors import ConfigurationError, ResolutionFailure
from herald_v1.models import Card, EmoteRef, PostedMessage, ReactionEvent, RoleRef
from herald_v1.records import MessageIdStore
from herald_v1.services.emote_service import EmoteCatalog
from herald_v1.services.logger_service import LoggerService
from herald_v1.storage import MessagePackStore
from herald_v1.utils.files import read_or_create

ROLE_LIST_TITLE = "Role List"
ROLE_LIST_HEADER = "Please react with any of the following emotes to receive its corresponding role.\n"


class RoleState(Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class RoleBinding:
    role: RoleRef
    emote: EmoteRef


def parse_binding_lines(text: str) -> list[tuple[int, str, str]]:
    pairs: list[tuple[int, str, str]] = []
    for line_no, raw_line in enumerate(text.splitlines(), start=1):
        fields = raw_line.rstrip("\r").split(";")
        if len(fields) != 2:
            continue
        pairs.append((line_no, fields[0], fields[1]))
    return pairs


def render_role_card(bindings: list[RoleBinding] | tuple[RoleBinding, ...]) -> Card:
    description = ROLE_LIST_HEADER + "".join(f"\n**{binding.role.name}**: {binding.emote}\n" for binding in bindings)
    return Card(title=ROLE_LIST_TITLE, description=description)


class RoleService:
    """
    Keeps one role message in the bound channel in sync with `roles.txt` and
    turns reactions on that message into role grants and revocations.
    """

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
    ) -> None:
        self.guild_id = guild_id
        self.channel_id = channel_id
        self.bot_user_id = bot_user_id
        self.path = settings.roles_path
        self.id_store = MessageIdStore(settings.role_id_path)
        self.transport = transport
        self.emotes = emotes
        self.store = store
        self.logger = logger
        self.state = RoleState.UNLOADED
        self.bindings: tuple[RoleBinding, ...] = ()
        self.message_id = 0
        self._load_lock = asyncio.Lock()

    @property
    def ready(self) -> bool:
        return self.state is RoleState.READY

    async def resolve_bindings(self, text: str) -> list[RoleBinding]:
        roles = await self.transport.list_roles(self.guild_id)
        bindings: list[RoleBinding] = []
        for line_no, role_name, emote_name in parse_binding_lines(text):
            try:
                role = next((role for role in roles if role.name == role_name), None)
                if role is None:
                    raise ResolutionFailure("role", role_name, line_no)
                emote = await self.emotes.resolve(self.guild_id, emote_name)
                if emote is None:
                    raise ResolutionFailure("emote", emote_name, line_no)
            except ResolutionFailure as exc:
                self.logger.warn("roles.binding_skipped", path=str(self.path), kind=exc.kind, name=exc.name, line=exc.line)
                continue
            bindings.append(RoleBinding(role=role, emote=emote))
        return bindings

    async def load(self) -> bool:
        async with self._load_lock:
            previous = self.state
            self.state = RoleState.LOADING
            try:
                ok = await self._load_unlocked()
            except BaseException:
                self.state = RoleState.READY if previous is RoleState.READY else RoleState.FAILED
                raise
            if ok:
                self.state = RoleState.READY
            elif previous is RoleState.READY:
                self.logger.warn("roles.reload_failed_keeping_previous", bindings=len(self.bindings))
                self.state = RoleState.READY
            else:
                self.state = RoleState.FAILED
            return ok

    async def _load_unlocked(self) -> bool:
        try:
            text = await read_or_create(self.path, self.logger, "roles.file_created")
        except (OSError, ConfigurationError) as exc:
            self.logger.error("roles.load_failed", path=str(self.path), error=str(exc)[:300])
            return False
        if text is None:
            return False

        await self.emotes.refresh(self.guild_id)
        bindings = await self.resolve_bindings(text)
        if not bindings:
            self.logger.warn("roles.none_found", path=str(self.path))
            return False
        self.logger.log("roles.loaded", bindings=len(bindings))

        card = render_role_card(bindings)
        message = await self._fetch_stored_message()
        if message is not None:
            await self.transport.edit_card(self.channel_id, message.id, card)
            message_id = message.id
            for binding in bindings:
                if binding.emote.key in message.reaction_keys:
                    continue
                await self.transport.add_reaction(self.channel_id, message.id, binding.emote.key)
            self.logger.log("roles.message_reused", message_id=message.id)
        else:
            posted = await self.transport.send_card(self.channel_id, card)
            message_id = posted.id
            for binding in bindings:
                await self.transport.add_reaction(self.channel_id, posted.id, binding.emote.key)
            self.id_store.write(posted.id)
            self.logger.log("roles.message_created", message_id=posted.id)

        self.bindings = tuple(bindings)
        self.message_id = message_id
        return True

    async def _fetch_stored_message(self) -> PostedMessage | None:
        stored_id = self.id_store.read()
        if stored_id <= 0:
            self.logger.warn("roles.no_stored_message", path=str(self.id_store.path))
            return None
        message = await self.transport.fetch_message(self.channel_id, stored_id)
        if message is None:
            self.logger.warn("roles.stored_message_missing", message_id=stored_id)
        return message

    def routes(self, channel_id: int, message_id: int, user_id: int) -> bool:
        """True when a reaction with these identifiers belongs to the role message."""

        if self.message_id <= 0 or not self.bindings:
            return False
        if channel_id != self.channel_id:
            return False
        if user_id == self.bot_user_id:
            return False
        return message_id == self.message_id

    def binding_for(self, emote_key: str) -> RoleBinding | None:
        for binding in self.bindings:
            if binding.emote.key == emote_key:
                return binding
        return None

    async def on_reaction_added(self, event: ReactionEvent) -> bool:
        if not self.routes(event.channel_id, event.message_id, event.user_id):
            return False
        binding = self.binding_for(event.emote_key)
        if binding is None:
            return False
        granted = await self.transport.grant_role(self.guild_id, event.user_id, binding.role.id)
        if granted:
            self.store.bump("role_grants")
            self.logger.log("roles.granted", user_id=event.user_id, role=binding.role.name)
        else:
            self.logger.warn("roles.member_missing", user_id=event.user_id, role=binding.role.name)
        return granted

    async def on_reaction_removed(self, event: ReactionEvent) -> bool:
        if not self.routes(event.channel_id, event.message_id, event.user_id):
            return False
        binding = self.binding_for(event.emote_key)
        if binding is None:
            return False
        revoked = await self.transport.revoke_role(self.guild_id, event.user_id, binding.role.id)
        if revoked:
            self.store.bump("role_revokes")
            self.logger.log("roles.revoked", user_id=event.user_id, role=binding.role.name)
        else:
            self.logger.warn("roles.member_missing", user_id=event.user_id, role=binding.role.name)
        return revoked
