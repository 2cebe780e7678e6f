from __future__ import annotations

import random
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable
from urllib.parse import urlparse

from herald_v1.config import Settings
from herald_v1.errors import (
    CommandError,
    CommandSyntaxError,
    ConfigurationError,
    OpenQuoteError,
    ParameterError,
    UserFacingError,
)
from herald_v1.models import Card, Invocation
from herald_v1.services.logger_service import LoggerService
from herald_v1.storage import MessagePackStore
from herald_v1.utils.files import read_or_create
from herald_v1.utils.text_utils import (
    get_mention_id,
    get_quote_substrings,
    get_unicode_letter,
    split_for_discord,
)

PLACEHOLDER_RE = re.compile(r"\\([0-9])")
MAX_PARAMS = 9
MAX_POLL_OPTIONS = 25
MAX_DELETE = 1000
MAX_BAN_DAYS = 7
POLL_FOOTER = "React with the corresponding emote to vote."
ACTION_REASON = "Bot command"

Reloader = Callable[[], Awaitable[bool]]


@dataclass(frozen=True)
class Command:
    name: str
    description: str
    syntax: str
    admin: bool
    routine: str | None = None


@dataclass(frozen=True)
class CustomCommand(Command):
    text: str = ""
    param_count: int = 0
    images: tuple[str, ...] = ()


def count_params(text: str) -> int:
    count = 0
    for index in range(1, MAX_PARAMS + 1):
        if f"\\{index}" not in text:
            break
        count = index
    return count


def parse_bool(raw: str) -> bool | None:
    value = raw.strip().lower()
    if value == "true":
        return True
    if value == "false":
        return False
    return None


def parse_command_line(line: str, trigger: str) -> CustomCommand:
    """Parse one `name;template;img1,img2;isAdmin` record. Raises ValueError."""

    fields = line.split(";")
    if len(fields) != 4:
        raise ValueError("invalid number of semi-colon separated items")
    name, text, raw_images, raw_admin = fields
    if name == "":
        raise ValueError("command name must not be empty")
    admin = parse_bool(raw_admin)
    if admin is None:
        admin = True
    param_count = count_params(text)
    syntax = f"``{trigger} {name}" + "".join(f" [param {index}]" for index in range(1, param_count + 1)) + "``"
    images = tuple(url.strip() for url in raw_images.split(",") if url.strip())
    return CustomCommand(
        name=name,
        description="Custom command.",
        syntax=syntax,
        admin=admin,
        text=text,
        param_count=param_count,
        images=images,
    )


def is_image_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)


def parse_bounded_int(raw: str, low: int, high: int) -> int | None:
    try:
        value = int(raw.strip())
    except ValueError:
        return None
    if value < low or value > high:
        return None
    return value


def builtin_commands(trigger: str) -> list[Command]:
    t = trigger
    return [
        Command("help", "Gets information of available commands.", f"``{t} help``", False, "help"),
        Command(
            "poll",
            "Spawns a message in a poll format.",
            f'``{t} poll "[title]" "[item]"(...) [Optional: URL]`` e.g. '
            f'``{t} poll "Which are better?" "Apples" "Oranges" "Pears" https://i.imgur.com/85wyR2x.jpg``',
            False,
            "poll",
        ),
        Command(
            "delete",
            "Deletes messages.",
            f"``{t} delete [Optional: number of messages, between 0-{MAX_DELETE}]`` e.g. ``{t} delete 10``",
            True,
            "delete",
        ),
        Command("kick", "Kicks user.", f"``{t} kick @[Username]`` e.g. ``{t} kick @Bot``", True, "kick"),
        Command(
            "ban",
            "Bans user.",
            f"``{t} ban @[Username] [Optional: number of days to remove messages of from user, between 0-{MAX_BAN_DAYS}]`` "
            f"e.g. ``{t} ban @Bot 5``",
            True,
            "ban",
        ),
        Command("unban", "Unbans user.", f"``{t} unban @[Username]`` e.g. ``{t} unban @Bot``", True, "unban"),
        Command("reloadcommands", "Reloads command handler.", f"``{t} reloadcommands``", True, "reloadcommands"),
        Command("reloadroles", "Reloads role handler.", f"``{t} reloadroles``", True, "reloadroles"),
        Command("reloadjoin", "Reloads join handler.", f"``{t} reloadjoin``", True, "reloadjoin"),
    ]


class CommandService:
    def __init__(
        self,
        settings: Settings,
        transport: Any,
        store: MessagePackStore,
        logger: LoggerService,
        *,
        rng: random.Random | None = None,
    ) -> None:
        self.settings = settings
        self.trigger = settings.bot_trigger
        self.path = settings.commands_path
        self.transport = transport
        self.store = store
        self.logger = logger
        self._rng = rng or random.Random()
        self._builtins = builtin_commands(self.trigger)
        self.table: dict[str, Command] = {command.name: command for command in self._builtins}
        self._reloaders: dict[str, Reloader] = {}
        self._routines: dict[str, Callable[[Invocation], Awaitable[None]]] = {
            "help": self._routine_help,
            "poll": self._routine_poll,
            "delete": self._routine_delete,
            "kick": self._routine_kick,
            "ban": self._routine_ban,
            "unban": self._routine_unban,
            "reloadcommands": self._routine_reload_commands,
            "reloadroles": self._routine_reload_roles,
            "reloadjoin": self._routine_reload_join,
        }

    def set_reloader(self, component: str, reloader: Reloader) -> None:
        self._reloaders[component] = reloader

    @property
    def custom_commands(self) -> list[CustomCommand]:
        return [command for command in self.table.values() if isinstance(command, CustomCommand)]

    async def load(self) -> bool:
        try:
            text = await read_or_create(self.path, self.logger, "commands.file_created")
        except (OSError, ConfigurationError) as exc:
            self.logger.error("commands.load_failed", path=str(self.path), error=str(exc)[:300])
            return False

        table: dict[str, Command] = {command.name: command for command in self._builtins}
        loaded = 0
        for line_no, raw_line in enumerate((text or "").splitlines(), start=1):
            line = raw_line.rstrip("\r")
            if not line.strip():
                continue
            try:
                command = parse_command_line(line, self.trigger)
            except ValueError as exc:
                self.logger.warn("commands.line_skipped", path=str(self.path), line=line_no, reason=str(exc))
                continue
            if command.name in table:
                self.logger.warn("commands.duplicate_skipped", path=str(self.path), line=line_no, name=command.name)
                continue
            table[command.name] = command
            loaded += 1

        if loaded == 0:
            self.logger.warn("commands.none_found", path=str(self.path))
        else:
            self.logger.log("commands.loaded", custom=loaded)
        self.table = table
        return True

    def find(self, name: str) -> Command | None:
        return self.table.get(name)

    async def handle(self, invocation: Invocation) -> None:
        if invocation.content == self.trigger:
            name = "help"
        else:
            tokens = invocation.tokens
            if tokens[0] != self.trigger:
                return
            name = tokens[1] if len(tokens) > 1 else ""

        # Snapshot so a concurrent reload cannot swap the table mid-dispatch.
        table = self.table
        command = table.get(name)
        if command is None:
            await self.transport.send_message(
                invocation.channel_id,
                f"Command not found. Please use ``{self.trigger}`` or ``{self.trigger} help`` to see a list of commands.",
            )
            return

        if command.admin and not invocation.is_admin:
            self.logger.log("command.denied", command=command.name, user_id=invocation.author_id)
            await self.transport.send_message(invocation.channel_id, "Insufficient permissions to execute this command.")
            return

        self.store.bump("commands", command.name)
        try:
            await self.execute(command, invocation)
        except UserFacingError as exc:
            self.logger.log("command.rejected", command=command.name, category=type(exc).__name__, error=str(exc))
            await self.transport.send_message(invocation.channel_id, exc.reply_text(command.syntax))

    async def execute(self, command: Command, invocation: Invocation) -> None:
        if isinstance(command, CustomCommand):
            await self.run_custom(command, invocation)
            return
        if command.routine is None:
            return
        await self._routines[command.routine](invocation)

    def render_custom(self, command: CustomCommand, invocation: Invocation) -> str:
        tokens = invocation.tokens
        if len(tokens) - 2 != command.param_count:
            raise ParameterError("incorrect number of parameters")
        args = tokens[2:]

        def substitute(match: re.Match[str]) -> str:
            index = int(match.group(1))
            if index == 0:
                return invocation.author_name
            if index <= command.param_count:
                return args[index - 1]
            return match.group(0)

        return PLACEHOLDER_RE.sub(substitute, command.text)

    def pick_image(self, images: tuple[str, ...]) -> str | None:
        if not images:
            return None
        url = self._rng.choice(images)
        if not is_image_url(url):
            self.logger.warn("command.invalid_image_url", url=url[:200])
            return None
        return url

    async def run_custom(self, command: CustomCommand, invocation: Invocation) -> None:
        text = self.render_custom(command, invocation)
        card = Card(description=text, image_url=self.pick_image(command.images))
        await self.transport.send_card(invocation.channel_id, card)

    def help_text(self, is_admin: bool) -> str:
        parts = ["Available commands:\n"]
        for command in self.table.values():
            entry = f"{command.name}\n\t{command.description}"
            if command.admin and is_admin:
                entry += " (admin only)"
            entry += f"\n\tSyntax: {command.syntax}\n"
            parts.append(entry)
        return "".join(parts)

    async def _routine_help(self, invocation: Invocation) -> None:
        for chunk in split_for_discord(self.help_text(invocation.is_admin)):
            if not await self.transport.send_direct(invocation.author_id, chunk):
                await self.transport.send_message(invocation.channel_id, "User is invalid. Could not send DM.")
                return
        await self.transport.send_message(invocation.channel_id, "DM sent.")

    async def _routine_poll(self, invocation: Invocation) -> None:
        tokens = invocation.tokens
        if len(tokens) < 4:
            raise ParameterError("insufficient parameters")

        try:
            quotes = get_quote_substrings(invocation.content)
        except OpenQuoteError as exc:
            raise CommandSyntaxError("open quotation") from exc
        if not quotes:
            raise CommandSyntaxError("no quotation strings found")
        if len(quotes) < 2:
            raise CommandSyntaxError("only title quotation string found")

        title = quotes[0]
        options = quotes[1 : MAX_POLL_OPTIONS + 1]
        letters = [get_unicode_letter(index) for index in range(len(options))]
        description = "".join(f"{letter} **{option}**\n" for letter, option in zip(letters, options))
        image_url = tokens[-1] if is_image_url(tokens[-1]) else None

        posted = await self.transport.send_card(
            invocation.channel_id,
            Card(title=title, description=description, footer=POLL_FOOTER, image_url=image_url),
        )
        for letter in letters:
            await self.transport.add_reaction(posted.channel_id, posted.id, letter)
        await self.transport.delete_message(invocation.channel_id, invocation.message_id)
        self.logger.log("poll.posted", channel_id=invocation.channel_id, message_id=posted.id, options=len(options))

    async def _routine_delete(self, invocation: Invocation) -> None:
        tokens = invocation.tokens
        if len(tokens) < 3:
            count = 1
        else:
            parsed = parse_bounded_int(tokens[2], 0, MAX_DELETE)
            if parsed is None:
                raise CommandError("invalid number of messages")
            count = parsed

        message_ids = await self.transport.history_before(invocation.channel_id, invocation.message_id, count)
        deleted = 0
        for message_id in message_ids:
            await self.transport.delete_message(invocation.channel_id, message_id)
            deleted += 1
        await self.transport.send_message(invocation.channel_id, f"{deleted} message(s) deleted.")
        self.logger.log("moderation.deleted", channel_id=invocation.channel_id, user_id=invocation.author_id, count=deleted)

    def _target_user(self, tokens: list[str]) -> int:
        if len(tokens) < 3:
            raise ParameterError("insufficient parameters")
        user_id = get_mention_id(tokens[2])
        if user_id == 0:
            raise CommandError("invalid user")
        return user_id

    async def _routine_kick(self, invocation: Invocation) -> None:
        user_id = self._target_user(invocation.tokens)
        await self.transport.kick(invocation.guild_id, user_id, reason=ACTION_REASON)
        self.logger.log("moderation.kicked", guild_id=invocation.guild_id, user_id=user_id, actor_id=invocation.author_id)
        await self.transport.send_message(invocation.channel_id, "User kicked.")

    async def _routine_ban(self, invocation: Invocation) -> None:
        tokens = invocation.tokens
        user_id = self._target_user(tokens)
        if len(tokens) == 4:
            days = parse_bounded_int(tokens[3], 0, MAX_BAN_DAYS)
            if days is None:
                raise CommandError("invalid number of days")
            reply = f"User banned, deleted {days} days of their message history."
        else:
            days = 0
            reply = "User banned."
        await self.transport.ban(invocation.guild_id, user_id, delete_days=days, reason=ACTION_REASON)
        self.logger.log(
            "moderation.banned",
            guild_id=invocation.guild_id,
            user_id=user_id,
            actor_id=invocation.author_id,
            delete_days=days,
        )
        await self.transport.send_message(invocation.channel_id, reply)

    async def _routine_unban(self, invocation: Invocation) -> None:
        user_id = self._target_user(invocation.tokens)
        await self.transport.unban(invocation.guild_id, user_id, reason=ACTION_REASON)
        self.logger.log("moderation.unbanned", guild_id=invocation.guild_id, user_id=user_id, actor_id=invocation.author_id)
        await self.transport.send_message(invocation.channel_id, "User unbanned.")

    async def _reply_reload(self, invocation: Invocation, label: str, ok: bool) -> None:
        if ok:
            await self.transport.send_message(invocation.channel_id, "Reload succeeded.")
        else:
            await self.transport.send_message(
                invocation.channel_id, f"{label} reload failed. See console output for details."
            )

    async def _run_reloader(self, component: str) -> bool:
        reloader = self._reloaders.get(component)
        if reloader is None:
            self.logger.error("reload.unavailable", component=component)
            return False
        return await reloader()

    async def _routine_reload_commands(self, invocation: Invocation) -> None:
        await self._reply_reload(invocation, "Command", await self.load())

    async def _routine_reload_roles(self, invocation: Invocation) -> None:
        await self._reply_reload(invocation, "Role", await self._run_reloader("roles"))

    async def _routine_reload_join(self, invocation: Invocation) -> None:
        await self._reply_reload(invocation, "Join", await self._run_reloader("join"))
