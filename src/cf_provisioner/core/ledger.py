"""Durable record of scoped tokens awaiting revocation.

A token id is recorded right after it is minted and removed once it has been
revoked.  If the process dies before its cleanup runs (crash, SIGKILL), the
next run finds the leftover ids and revokes them first.  Token values are
never written.
"""

import json
import logging
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, Field

from cf_provisioner.core.files import write_atomic

logger = logging.getLogger(__name__)


class PendingToken(BaseModel):
    id: str
    issued_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    project: str = ""


class TokenLedger(BaseModel):
    """JSON file listing token ids that have not been confirmed revoked.

    Attributes:
        version: Ledger file format version
        tokens: Pending tokens keyed by id
    """

    version: int = 1
    tokens: dict[str, PendingToken] = Field(default_factory=dict)

    def save(self, path: Path) -> None:
        """Write the ledger atomically (temp file + rename)."""
        data = self.model_dump(mode="json")
        write_atomic(path, json.dumps(data, indent=2, sort_keys=True) + "\n")
        logger.debug("Token ledger saved: %d pending, path=%s", len(self.tokens), path)

    @classmethod
    def load(cls, path: Path) -> "TokenLedger":
        return cls.model_validate_json(path.read_text(encoding="utf-8"))

    @classmethod
    def load_or_create(cls, path: Path) -> "TokenLedger":
        if path.exists():
            return cls.load(path)
        return cls()


class LedgerFile:
    """Read-modify-write helper bound to one ledger path."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def pending(self) -> list[PendingToken]:
        return list(TokenLedger.load_or_create(self._path).tokens.values())

    def record(self, token_id: str, *, project: str = "") -> None:
        ledger = TokenLedger.load_or_create(self._path)
        ledger.tokens[token_id] = PendingToken(id=token_id, project=project)
        ledger.save(self._path)

    def discard(self, token_id: str) -> None:
        if not self._path.exists():
            return
        ledger = TokenLedger.load_or_create(self._path)
        if ledger.tokens.pop(token_id, None) is None:
            return
        if ledger.tokens:
            ledger.save(self._path)
        else:
            self._path.unlink(missing_ok=True)
            logger.debug("Token ledger empty, removed %s", self._path)
