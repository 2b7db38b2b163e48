"""History store adapters: the hosted Supabase table and a local JSONL backend."""

from __future__ import annotations

import json
import logging
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Any, Iterator, List, Optional

import requests
from pydantic import ValidationError

from .config import Settings, get_settings
from .errors import HistoryError, HistoryNotFound, InvalidRequest
from .models import HISTORY_TYPES, HistoryRecord

logger = logging.getLogger(__name__)


def validate_record(record: HistoryRecord) -> None:
    """Reject records with empty required fields before any I/O."""
    missing = [name for name in ("input", "output", "type") if not getattr(record, name)]
    if missing:
        raise InvalidRequest(f"Missing required fields: {', '.join(missing)}")


def _check_type(record_type: Optional[str]) -> None:
    if record_type is not None and record_type not in HISTORY_TYPES:
        raise InvalidRequest(
            f"Unknown history type {record_type!r}; expected one of {', '.join(HISTORY_TYPES)}"
        )


class HistoryStore(ABC):
    """Append-only log of generation inputs and outputs."""

    @abstractmethod
    def save(self, record: HistoryRecord) -> HistoryRecord:
        """Insert one row and return it with id and created_at filled in."""

    @abstractmethod
    def list(self, record_type: Optional[str] = None) -> List[HistoryRecord]:
        """Rows newest first, optionally filtered by type."""

    @abstractmethod
    def get(self, record_id: str) -> HistoryRecord:
        """One row by id; raises HistoryError when it does not exist."""


def save_quietly(store: Optional[HistoryStore], record: HistoryRecord) -> Optional[HistoryRecord]:
    """
    Persist a generation without ever failing the caller.

    History is a side effect of generation; any storage problem is logged and
    swallowed so the user still gets the generated result.
    """
    if store is None:
        logger.warning("No history store configured; skipping save of %s record", record.type)
        return None
    try:
        saved = store.save(record)
    except (HistoryError, ValueError) as exc:
        logger.error("Error saving %s record to history: %s", record.type, exc)
        return None
    logger.info("Saved %s record %s to history", saved.type, saved.id)
    return saved


# --- Supabase (PostgREST) ---------------------------------------------------


class SupabaseHistoryStore(HistoryStore):
    """History rows in a hosted Postgres table, reached through PostgREST."""

    def __init__(
        self,
        url: str,
        key: str,
        *,
        table: str = "history",
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        self.endpoint = f"{url.rstrip('/')}/rest/v1/{table}"
        self.timeout = timeout
        self.session = session or requests.Session()
        self.headers = {
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "Content-Type": "application/json",
        }

    def _request(self, method: str, *, params=None, json_body=None, headers=None) -> Any:
        try:
            resp = self.session.request(
                method,
                self.endpoint,
                params=params,
                json=json_body,
                headers={**self.headers, **(headers or {})},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise HistoryError(f"Supabase request failed: {exc}") from exc
        if not resp.ok:
            try:
                body = resp.json()
                message = body.get("message") or body.get("error") or resp.text
            except (ValueError, AttributeError):
                message = resp.text
            raise HistoryError(f"Supabase returned {resp.status_code}: {message}")
        try:
            return resp.json()
        except ValueError as exc:
            raise HistoryError("Supabase returned a non-JSON body") from exc

    @staticmethod
    def _rows(payload: Any) -> List[HistoryRecord]:
        if not isinstance(payload, list):
            raise HistoryError("Supabase returned an unexpected payload shape")
        try:
            return [HistoryRecord.model_validate(row) for row in payload]
        except ValidationError as exc:
            raise HistoryError(f"Supabase returned an invalid history row: {exc}") from exc

    def save(self, record: HistoryRecord) -> HistoryRecord:
        validate_record(record)
        payload = self._request(
            "POST",
            json_body=record.insert_payload(),
            headers={"Prefer": "return=representation"},
        )
        rows = self._rows(payload)
        if not rows:
            raise HistoryError("Supabase insert returned no row")
        return rows[0]

    def list(self, record_type: Optional[str] = None) -> List[HistoryRecord]:
        _check_type(record_type)
        params = {"select": "*", "order": "created_at.desc"}
        if record_type:
            params["type"] = f"eq.{record_type}"
        return self._rows(self._request("GET", params=params))

    def get(self, record_id: str) -> HistoryRecord:
        rows = self._rows(
            self._request("GET", params={"select": "*", "id": f"eq.{record_id}"})
        )
        if not rows:
            raise HistoryNotFound(f"History record {record_id} not found")
        return rows[0]


# --- Local JSONL ---------------------------------------------------------------

_LOCKS: dict[str, Lock] = {}
_LOCKS_GUARD = Lock()


@contextmanager
def locked_path(path: Path) -> Iterator[None]:
    """Serialize writers of one history file within this process."""
    key = str(path.resolve())
    with _LOCKS_GUARD:
        lock = _LOCKS.setdefault(key, Lock())
    with lock:
        yield


def default_data_dir() -> Path:
    return Path(__file__).resolve().parents[2] / "data" / "history"


class JsonlHistoryStore(HistoryStore):
    """Development backend: one JSON object per line in ``history.jsonl``."""

    def __init__(self, root: Optional[Path | str] = None):
        base = Path(root).expanduser().resolve() if root else default_data_dir()
        self.path = base / "history.jsonl"

    def _read_all(self) -> List[HistoryRecord]:
        if not self.path.exists():
            return []
        records: List[HistoryRecord] = []
        for line in self.path.read_text(encoding="utf-8").splitlines():
            if not line.strip():
                continue
            try:
                records.append(HistoryRecord.model_validate_json(line))
            except ValidationError:
                logger.warning("Skipping unreadable history line in %s", self.path)
        return records

    def save(self, record: HistoryRecord) -> HistoryRecord:
        validate_record(record)
        stored = record.model_copy(
            update={"id": uuid.uuid4().hex, "created_at": datetime.now(timezone.utc)}
        )
        try:
            with locked_path(self.path):
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with self.path.open("a", encoding="utf-8") as f:
                    f.write(stored.model_dump_json())
                    f.write("\n")
        except OSError as exc:
            raise HistoryError(f"Could not write {self.path}: {exc}") from exc
        return stored

    def list(self, record_type: Optional[str] = None) -> List[HistoryRecord]:
        _check_type(record_type)
        with locked_path(self.path):
            records = self._read_all()
        if record_type:
            records = [r for r in records if r.type == record_type]
        # Stable sort keeps later appends first when timestamps tie.
        records.reverse()
        return sorted(records, key=lambda r: r.created_at, reverse=True)

    def get(self, record_id: str) -> HistoryRecord:
        with locked_path(self.path):
            records = self._read_all()
        for record in records:
            if record.id == record_id:
                return record
        raise HistoryNotFound(f"History record {record_id} not found")


def build_history_store(settings: Optional[Settings] = None) -> HistoryStore:
    """Construct the configured store once at start-up."""
    settings = settings or get_settings()
    backend = settings.history_backend.lower()
    if backend == "jsonl":
        return JsonlHistoryStore(settings.history_data_dir)
    if backend == "supabase":
        if not settings.supabase_url or not settings.supabase_key:
            raise RuntimeError("SUPABASE_URL and SUPABASE_KEY are required for the supabase backend.")
        return SupabaseHistoryStore(
            settings.supabase_url,
            settings.supabase_key,
            table=settings.history_table,
            timeout=settings.request_timeout,
        )
    raise ValueError(f"Unknown HISTORY_BACKEND: {settings.history_backend}")


def dumps_output(value: Any) -> str:
    """Serialize a generation result for the ``output`` column."""
    return json.dumps(value, ensure_ascii=False)
