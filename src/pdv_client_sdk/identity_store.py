from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path

from platformdirs import user_data_dir
from pydantic import ValidationError as PydanticValidationError

from .identity import IdentityContext

logger = logging.getLogger(__name__)


@dataclass
class IdentityStore:
    """Remembers the identity context between terminal restarts.

    Loading is explicit: callers get an ``IdentityContext`` back and pass it on.
    """

    app_name: str = "pdv"
    filename: str = "identity.json"
    base_dir: Path | None = None

    def _path(self) -> Path:
        base = self.base_dir or Path(user_data_dir(self.app_name, "PDV"))
        base.mkdir(parents=True, exist_ok=True)
        return base / self.filename

    def save(self, identity: IdentityContext) -> None:
        path = self._path()
        data = identity.model_dump(mode="json")
        path.write_text(json.dumps(data, indent=2))
        try:
            path.chmod(0o600)
        except OSError:
            logger.warning("could not restrict permissions on %s", path)

    def load(self) -> IdentityContext | None:
        path = self._path()
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text())
        except json.JSONDecodeError:
            self.clear()
            return None
        try:
            return IdentityContext.model_validate(data)
        except PydanticValidationError:
            self.clear()
            return None

    def clear(self) -> None:
        path = self._path()
        if path.exists():
            path.unlink()
