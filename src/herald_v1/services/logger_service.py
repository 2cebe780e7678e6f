from __future__ import annotations

from datetime import datetime, timezone

from herald_v1.storage import MessagePackStore

MAX_LOG_ROWS = 2000


class LoggerService:
    def __init__(self, store: MessagePackStore) -> None:
        self.store = store

    def log(self, event: str, **data: object) -> None:
        self._emit("INFO", event, data)

    def warn(self, event: str, **data: object) -> None:
        self._emit("WARN", event, data)

    def error(self, event: str, **data: object) -> None:
        self._emit("ERROR", event, data)

    def _emit(self, level: str, event: str, data: dict[str, object]) -> None:
        row = {
            "ts": datetime.now(tz=timezone.utc).isoformat(),
            "level": level,
            "event": event,
            "data": data,
        }
        logs = self.store.data.setdefault("logs", [])
        logs.append(row)
        if len(logs) > MAX_LOG_ROWS:
            del logs[: len(logs) - MAX_LOG_ROWS]
        self.store.touch()
        print(f"[{row['ts']}] {level} {event} {data}")
