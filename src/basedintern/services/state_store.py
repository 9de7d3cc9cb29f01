from __future__ import annotations

import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from basedintern.domain.state import PersistedState
from basedintern.domain.state_migration import migrate, schema_version_of
from basedintern.errors import CorruptStateError

logger = logging.getLogger(__name__)


class JsonStateStore:
    """The agent's single state record, stored as one JSON document.

    Writes go to a temporary sibling file which then replaces the target, so a crash
    mid-write leaves the previous record intact.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def read_raw(self) -> dict[str, Any] | None:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise CorruptStateError(f"cannot read state file {self.path}: {exc}") from exc
        try:
            raw = json.loads(text)
        except json.JSONDecodeError as exc:
            raise CorruptStateError(f"state file {self.path} is not valid JSON: {exc}") from exc
        if not isinstance(raw, dict):
            raise CorruptStateError(f"state file {self.path} must hold a JSON object")
        return raw

    def load(self, now: datetime) -> PersistedState:
        raw = self.read_raw()
        if raw is None:
            logger.info("state_initialized", extra={"extra": {"path": str(self.path)}})
            return PersistedState.initial(now)

        from_version = schema_version_of(raw)
        record = migrate(raw)
        try:
            state = PersistedState.model_validate(record)
        except ValidationError as exc:
            raise CorruptStateError(f"state file {self.path} failed validation: {exc}") from exc

        if from_version != state.schema_version:
            logger.info(
                "state_migrated",
                extra={
                    "extra": {
                        "path": str(self.path),
                        "from_version": from_version,
                        "to_version": state.schema_version,
                    }
                },
            )
        return state

    def save(self, state: PersistedState) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        content = json.dumps(state.to_record(), indent=2, sort_keys=True) + "\n"
        with tmp.open("w", encoding="utf-8") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        tmp.replace(self.path)
