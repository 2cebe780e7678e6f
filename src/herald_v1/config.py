from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from herald_v1.errors import ConfigurationError

SETTINGS_FILE = Path("settings.txt")


@dataclass(frozen=True)
class Settings:
    discord_token: str
    bot_trigger: str
    command_enabled: bool
    role_enabled: bool
    role_guild: str
    role_channel: str
    join_enabled: bool
    join_guild: str
    join_channel: str
    data_dir: Path
    store_path: Path

    @property
    def commands_path(self) -> Path:
        return self.data_dir / "commands.txt"

    @property
    def roles_path(self) -> Path:
        return self.data_dir / "roles.txt"

    @property
    def role_id_path(self) -> Path:
        return self.data_dir / "rolesdata.bin"

    @property
    def join_path(self) -> Path:
        return self.data_dir / "joinmessage.txt"

    @property
    def emotes_path(self) -> Path:
        return self.data_dir / "emotes.csv"

    @staticmethod
    def load(path: Path = SETTINGS_FILE) -> "Settings":
        values = _parse_settings_file(path)
        token = values.get("DISCORD_TOKEN", "").strip()
        trigger = values.get("BOT_TRIGGER", "!bot").strip()
        data_dir = Path(values.get("DATA_DIR", "data"))
        store_path = Path(values.get("STORE_PATH", str(data_dir / "herald_v1.msgpack")))
        if not token:
            raise ConfigurationError(f"DISCORD_TOKEN is required in {path}.")
        if not trigger or " " in trigger:
            raise ConfigurationError("BOT_TRIGGER must be a single non-empty word.")
        return Settings(
            discord_token=token,
            bot_trigger=trigger,
            command_enabled=_parse_flag(values.get("COMMAND_ENABLED"), True),
            role_enabled=_parse_flag(values.get("ROLE_ENABLED"), False),
            role_guild=values.get("ROLE_GUILD", "").strip(),
            role_channel=values.get("ROLE_CHANNEL", "").strip(),
            join_enabled=_parse_flag(values.get("JOIN_ENABLED"), False),
            join_guild=values.get("JOIN_GUILD", "").strip(),
            join_channel=values.get("JOIN_CHANNEL", "").strip(),
            data_dir=data_dir,
            store_path=store_path,
        )


def _parse_flag(raw: str | None, default: bool) -> bool:
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    return default


def _parse_settings_file(path: Path) -> dict[str, str]:
    if not path.exists():
        raise ConfigurationError(f"{path} not found. Copy settings.example.txt to {path} and fill values.")
    values: dict[str, str] = {}
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        values[key.strip()] = value.strip()
    return values
