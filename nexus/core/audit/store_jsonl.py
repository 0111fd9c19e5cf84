from __future__ import annotations

import hashlib
import json
import os
from typing import Any, Dict, List, Sequence

from nexus.core.audit.models import AdminLogEntry

GENESIS_HASH = "0" * 64
_CHAIN_KEYS = {"prev_hash", "hash"}


def row_digest(prev_hash: str, payload: Dict[str, Any]) -> str:
    """sha256 over the previous link and the payload serialized with sorted keys and no whitespace."""
    body = json.dumps(payload, ensure_ascii=False, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(f"{prev_hash}\n{body}".encode("utf-8")).hexdigest()


def first_broken_row(rows: Sequence[Dict[str, Any]]) -> int:
    """Index of the first row whose link does not match, or -1 for an intact log."""
    prev = GENESIS_HASH
    for idx, row in enumerate(rows):
        payload = {k: v for k, v in row.items() if k not in _CHAIN_KEYS}
        if row.get("prev_hash") != prev or row.get("hash") != row_digest(prev, payload):
            return idx
        prev = str(row.get("hash"))
    return -1


class AuditJsonlStore:
    """
    Local `admin_logs` table: one hash-chained JSON row per line.

    The chain head is kept beside the log (`<path>.head`) so appends never
    re-read the whole file.
    """

    def __init__(self, *, path: str):
        self.path = path
        self.head_path = path + ".head"
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)

    def _head(self) -> str:
        try:
            with open(self.head_path, "r", encoding="utf-8") as f:
                return str(json.load(f).get("head_hash") or GENESIS_HASH)
        except (OSError, ValueError, AttributeError):
            return GENESIS_HASH

    def _set_head(self, head_hash: str) -> None:
        tmp = self.head_path + ".tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump({"head_hash": head_hash}, f)
        os.replace(tmp, self.head_path)

    def append(self, entry: AdminLogEntry) -> Dict[str, Any]:
        prev = self._head()
        payload = entry.to_record()
        row = {**payload, "prev_hash": prev, "hash": row_digest(prev, payload)}
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(json.dumps(row, ensure_ascii=False) + "\n")
        self._set_head(str(row["hash"]))
        return row

    def rows(self) -> List[Dict[str, Any]]:
        if not os.path.exists(self.path):
            return []
        out: List[Dict[str, Any]] = []
        with open(self.path, "r", encoding="utf-8") as f:
            for line in f:
                if not line.strip():
                    continue
                try:
                    obj = json.loads(line)
                except ValueError:
                    continue
                if isinstance(obj, dict):
                    out.append(obj)
        return out

    def entries(self) -> List[AdminLogEntry]:
        """Parsed rows, oldest first; rows that no longer fit the schema are skipped."""
        out: List[AdminLogEntry] = []
        for row in self.rows():
            try:
                out.append(AdminLogEntry.from_record({k: v for k, v in row.items() if k not in _CHAIN_KEYS}))
            except ValueError:
                continue
        return out

    def verify(self) -> bool:
        return first_broken_row(self.rows()) == -1
