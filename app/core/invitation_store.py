"""Keyed storage for pending invitation records.

Two backends share the same contract:
    - FileInvitationStore   : one JSON file per code (default, survives restarts)
    - InMemoryInvitationStore : process-local dict (demo mode and tests)

take() is the redemption primitive: it removes and returns the record in a
single atomic step, so at most one caller ever obtains a given code.
"""
from __future__ import annotations
import json
import logging
import os
import threading
import uuid
from pathlib import Path
from typing import Optional

from app.core.exceptions import InvitationExistsError
from app.core.models import InvitationRecord
from app.core.validators import ensure_safe_invitation_code

logger = logging.getLogger(__name__)


def _same_company(candidate: Optional[str], company_id: Optional[str]) -> bool:
    if not company_id:
        return True
    return (candidate or "").lower() == company_id.lower()


class InvitationStore:
    """Storage contract for invitation records."""

    def create(self, record: InvitationRecord) -> None:
        """Persist a new record; raises InvitationExistsError if the code is taken."""
        raise NotImplementedError

    def put(self, record: InvitationRecord) -> None:
        """Create or overwrite a record."""
        raise NotImplementedError

    def get(self, invitation_code: str) -> Optional[InvitationRecord]:
        raise NotImplementedError

    def take(self, invitation_code: str) -> Optional[InvitationRecord]:
        """Atomically remove and return a record (None if absent)."""
        raise NotImplementedError

    def delete(self, invitation_code: str) -> bool:
        """Remove a record; returns False when it did not exist."""
        raise NotImplementedError

    def list(self, company_id: Optional[str] = None) -> list[InvitationRecord]:
        """Return all records, optionally restricted to one company."""
        raise NotImplementedError


class InMemoryInvitationStore(InvitationStore):
    """Thread-safe in-process store."""

    def __init__(self):
        self._records: dict[str, InvitationRecord] = {}
        self._lock = threading.Lock()

    def create(self, record: InvitationRecord) -> None:
        ensure_safe_invitation_code(record.invitation_code)
        with self._lock:
            if record.invitation_code in self._records:
                raise InvitationExistsError(record.invitation_code)
            self._records[record.invitation_code] = record

    def put(self, record: InvitationRecord) -> None:
        ensure_safe_invitation_code(record.invitation_code)
        with self._lock:
            self._records[record.invitation_code] = record

    def get(self, invitation_code: str) -> Optional[InvitationRecord]:
        with self._lock:
            return self._records.get(invitation_code)

    def take(self, invitation_code: str) -> Optional[InvitationRecord]:
        with self._lock:
            return self._records.pop(invitation_code, None)

    def delete(self, invitation_code: str) -> bool:
        return self.take(invitation_code) is not None

    def list(self, company_id: Optional[str] = None) -> list[InvitationRecord]:
        with self._lock:
            records = list(self._records.values())
        return [r for r in records if _same_company(r.company_id, company_id)]


class FileInvitationStore(InvitationStore):
    """Stores each invitation as <base_path>/<code>.json."""

    SUFFIX = ".json"

    def __init__(self, base_path: str | os.PathLike):
        if not str(base_path).strip():
            raise ValueError("Invitation store path is required")
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _path_for(self, invitation_code: str) -> Path:
        ensure_safe_invitation_code(invitation_code)
        return self.base_path / f"{invitation_code}{self.SUFFIX}"

    @staticmethod
    def _read(path: Path) -> InvitationRecord:
        return InvitationRecord.from_dict(json.loads(path.read_text(encoding="utf-8")))

    def create(self, record: InvitationRecord) -> None:
        path = self._path_for(record.invitation_code)
        try:
            with path.open("x", encoding="utf-8") as f:
                json.dump(record.to_dict(), f)
        except FileExistsError:
            raise InvitationExistsError(record.invitation_code)

    def put(self, record: InvitationRecord) -> None:
        path = self._path_for(record.invitation_code)
        tmp_path = path.with_name(f".{path.name}.{uuid.uuid4().hex}.tmp")
        tmp_path.write_text(json.dumps(record.to_dict()), encoding="utf-8")
        os.replace(tmp_path, path)

    def get(self, invitation_code: str) -> Optional[InvitationRecord]:
        path = self._path_for(invitation_code)
        try:
            return self._read(path)
        except FileNotFoundError:
            return None

    def take(self, invitation_code: str) -> Optional[InvitationRecord]:
        path = self._path_for(invitation_code)
        # Renaming is atomic: only one caller can move the file away.
        claimed = path.with_name(f".{path.name}.{uuid.uuid4().hex}.redeeming")
        try:
            os.rename(path, claimed)
        except FileNotFoundError:
            return None
        try:
            return self._read(claimed)
        finally:
            claimed.unlink(missing_ok=True)

    def delete(self, invitation_code: str) -> bool:
        path = self._path_for(invitation_code)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        return True

    def list(self, company_id: Optional[str] = None) -> list[InvitationRecord]:
        records = []
        for path in self.base_path.glob(f"*{self.SUFFIX}"):
            try:
                record = self._read(path)
            except FileNotFoundError:
                # Redeemed or deleted while listing
                continue
            except (ValueError, KeyError) as exc:
                logger.warning("Skipping unreadable invitation file %s: %s", path.name, exc)
                continue
            if _same_company(record.company_id, company_id):
                records.append(record)
        return records


def open_store(kind: str, base_path: str | os.PathLike = "") -> InvitationStore:
    """Build the store named by INVITATION_STORE ('file' or 'memory')."""
    if kind == "memory":
        return InMemoryInvitationStore()
    if kind == "file":
        return FileInvitationStore(base_path)
    raise ValueError(f"Unknown invitation store '{kind}'")
