"""Token store backends"""
import datetime
import json
import logging
import os
import sqlite3
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional

from smhelper.config import StoreConfig
from smhelper.errors import InternalStoreFailure

from .models import TokenRecord, parse_timestamp, utcnow

_logger = logging.getLogger("smhelper")


def _ts(value: datetime.datetime) -> str:
    # Fixed-width UTC ISO strings so SQL string comparison orders correctly
    return value.astimezone(datetime.timezone.utc).isoformat(timespec="microseconds")


class TokenStore(ABC):
    """Durable mapping from token string to its owner, quota and expiry."""

    @abstractmethod
    def save(
        self,
        token: str,
        email: str,
        allowed_requests: int,
        expires_at: datetime.datetime,
    ) -> TokenRecord:
        """Persist a new token record."""

    @abstractmethod
    def fetch(self, token: str) -> Optional[TokenRecord]:
        """Return the record for ``token``, or None if unknown or expired."""

    @abstractmethod
    def decrement(self, token: str) -> bool:
        """Consume one request if any remain. Returns True when consumed."""

    @abstractmethod
    def list(self) -> List[TokenRecord]:
        """All records, newest first, expired ones included."""

    @abstractmethod
    def delete_expired(self) -> int:
        """Purge expired records and return how many were removed."""


class SqliteTokenStore(TokenStore):
    def __init__(self, db_file: str = "tokens.db"):
        self.db_file = db_file
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_file, timeout=10)

    def _init_db(self) -> None:
        _logger.info("Initializing token database db_file=%s", self.db_file)
        try:
            conn = self._connect()
            try:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS tokens (
                        token TEXT PRIMARY KEY,
                        email TEXT NOT NULL,
                        allowed_requests INTEGER NOT NULL CHECK (allowed_requests >= 0),
                        created_at TEXT NOT NULL,
                        expires_at TEXT NOT NULL
                    )
                    """
                )
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as exc:
            _logger.exception("Error initializing token database db_file=%s", self.db_file)
            raise InternalStoreFailure("Failed to initialize token store", details=str(exc))

    @staticmethod
    def _row_to_record(row) -> TokenRecord:
        token, email, allowed_requests, created_at, expires_at = row
        return TokenRecord(
            token=token,
            email=email,
            allowed_requests=allowed_requests,
            created_at=parse_timestamp(created_at),
            expires_at=parse_timestamp(expires_at),
        )

    def save(self, token, email, allowed_requests, expires_at) -> TokenRecord:
        record = TokenRecord(
            token=token,
            email=email,
            allowed_requests=allowed_requests,
            created_at=utcnow(),
            expires_at=expires_at,
        )
        try:
            conn = self._connect()
            try:
                conn.execute(
                    """
                    INSERT INTO tokens (token, email, allowed_requests, created_at, expires_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (record.token, record.email, record.allowed_requests, _ts(record.created_at), _ts(record.expires_at)),
                )
                conn.commit()
            finally:
                conn.close()
        except (sqlite3.Error, OverflowError) as exc:
            _logger.exception("Error saving token email=%s", email)
            raise InternalStoreFailure("Failed to store token", details=str(exc))
        _logger.debug("Saved token email=%s allowed_requests=%d", email, allowed_requests)
        return record

    def fetch(self, token: str) -> Optional[TokenRecord]:
        try:
            conn = self._connect()
            try:
                row = conn.execute(
                    "SELECT token, email, allowed_requests, created_at, expires_at FROM tokens WHERE token = ?",
                    (token,),
                ).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as exc:
            _logger.exception("Error fetching token")
            raise InternalStoreFailure("Failed to read token", details=str(exc))
        if row is None:
            return None
        record = self._row_to_record(row)
        if record.is_expired():
            return None
        return record

    def decrement(self, token: str) -> bool:
        try:
            conn = self._connect()
            try:
                cur = conn.execute(
                    "UPDATE tokens SET allowed_requests = allowed_requests - 1 "
                    "WHERE token = ? AND allowed_requests > 0",
                    (token,),
                )
                conn.commit()
                consumed = cur.rowcount == 1
            finally:
                conn.close()
        except sqlite3.Error as exc:
            _logger.exception("Error decrementing token quota")
            raise InternalStoreFailure("Failed to update token usage", details=str(exc))
        return consumed

    def list(self) -> List[TokenRecord]:
        try:
            conn = self._connect()
            try:
                rows = conn.execute(
                    "SELECT token, email, allowed_requests, created_at, expires_at "
                    "FROM tokens ORDER BY created_at DESC"
                ).fetchall()
            finally:
                conn.close()
        except sqlite3.Error as exc:
            _logger.exception("Error listing tokens")
            raise InternalStoreFailure("Failed to retrieve tokens", details=str(exc))
        return [self._row_to_record(row) for row in rows]

    def delete_expired(self) -> int:
        try:
            conn = self._connect()
            try:
                cur = conn.execute("DELETE FROM tokens WHERE expires_at <= ?", (_ts(utcnow()),))
                conn.commit()
                deleted = cur.rowcount
            finally:
                conn.close()
        except sqlite3.Error as exc:
            _logger.exception("Error cleaning up expired tokens")
            raise InternalStoreFailure("Failed to clean up expired tokens", details=str(exc))
        _logger.info("Deleted expired tokens count=%d", deleted)
        return deleted


class InMemoryTokenStore(TokenStore):
    """Process-local store, lost on restart."""

    def __init__(self):
        self._records: Dict[str, TokenRecord] = {}
        self._lock = threading.Lock()

    def save(self, token, email, allowed_requests, expires_at) -> TokenRecord:
        record = TokenRecord(
            token=token,
            email=email,
            allowed_requests=allowed_requests,
            created_at=utcnow(),
            expires_at=expires_at,
        )
        with self._lock:
            self._records[token] = record
        return record

    def fetch(self, token: str) -> Optional[TokenRecord]:
        with self._lock:
            record = self._records.get(token)
        if record is None or record.is_expired():
            return None
        return record.model_copy()

    def decrement(self, token: str) -> bool:
        with self._lock:
            record = self._records.get(token)
            if record is None or record.allowed_requests <= 0:
                return False
            record.allowed_requests -= 1
            return True

    def list(self) -> List[TokenRecord]:
        with self._lock:
            records = [r.model_copy() for r in self._records.values()]
        return sorted(records, key=lambda r: r.created_at, reverse=True)

    def delete_expired(self) -> int:
        now = utcnow()
        with self._lock:
            expired = [t for t, r in self._records.items() if r.is_expired(now)]
            for token in expired:
                del self._records[token]
        return len(expired)


class JsonFileTokenStore(TokenStore):
    """Flat ``{"tokens": [...]}`` file, rewritten in full on every change."""

    def __init__(self, path: str = "data.json"):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _load(self) -> List[TokenRecord]:
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text(encoding="utf-8") or "{}")
            return [TokenRecord.from_json(item) for item in data.get("tokens", [])]
        except (OSError, ValueError, KeyError) as exc:
            _logger.exception("Error loading token file path=%s", self.path)
            raise InternalStoreFailure("Failed to read token store", details=str(exc))

    def _dump(self, records: List[TokenRecord]) -> None:
        payload = json.dumps({"tokens": [r.to_json() for r in records]}, indent=2)
        directory = self.path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=str(directory), prefix=".tokens-", suffix=".json")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
            os.replace(tmp_name, self.path)
        except OSError as exc:
            _logger.exception("Error saving token file path=%s", self.path)
            raise InternalStoreFailure("Failed to write token store", details=str(exc))

    def save(self, token, email, allowed_requests, expires_at) -> TokenRecord:
        record = TokenRecord(
            token=token,
            email=email,
            allowed_requests=allowed_requests,
            created_at=utcnow(),
            expires_at=expires_at,
        )
        with self._lock:
            records = [r for r in self._load() if r.token != token]
            records.append(record)
            self._dump(records)
        return record

    def fetch(self, token: str) -> Optional[TokenRecord]:
        with self._lock:
            record = next((r for r in self._load() if r.token == token), None)
        if record is None or record.is_expired():
            return None
        return record

    def decrement(self, token: str) -> bool:
        with self._lock:
            records = self._load()
            record = next((r for r in records if r.token == token), None)
            if record is None or record.allowed_requests <= 0:
                return False
            record.allowed_requests -= 1
            self._dump(records)
            return True

    def list(self) -> List[TokenRecord]:
        with self._lock:
            records = self._load()
        return sorted(records, key=lambda r: r.created_at, reverse=True)

    def delete_expired(self) -> int:
        now = utcnow()
        with self._lock:
            records = self._load()
            kept = [r for r in records if not r.is_expired(now)]
            if len(kept) != len(records):
                self._dump(kept)
        return len(records) - len(kept)


def create_token_store(config: StoreConfig) -> TokenStore:
    """Build the backend named by ``config.backend``."""
    if config.backend == "sqlite":
        return SqliteTokenStore(db_file=config.db_file)
    if config.backend == "json":
        return JsonFileTokenStore(path=config.json_file)
    if config.backend == "memory":
        return InMemoryTokenStore()
    raise ValueError(f"Unsupported token store backend: {config.backend}")
