from __future__ import annotations

import json
import os
import tempfile
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class ReadResult:
    ok: bool
    data: Any
    error: Optional[str] = None
    was_recovered: bool = False


def read_json_file(path: str, *, expect: type = dict) -> ReadResult:
    """Read one JSON document; never raises. `error` is "missing", "corrupt_json:..." or "not_<type>"."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            obj = json.load(f)
    except FileNotFoundError:
        return ReadResult(ok=False, data=expect(), error="missing")
    except json.JSONDecodeError as e:
        return ReadResult(ok=False, data=expect(), error=f"corrupt_json:{e}")
    except (OSError, UnicodeDecodeError) as e:
        return ReadResult(ok=False, data=expect(), error=str(e))
    if not isinstance(obj, expect):
        return ReadResult(ok=False, data=expect(), error=f"not_{expect.__name__}")
    return ReadResult(ok=True, data=obj)


def atomic_write_text(path: str, text: str) -> None:
    folder = os.path.dirname(path) or "."
    os.makedirs(folder, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=".tmp_", dir=folder)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.remove(tmp)
        raise


def atomic_write_json(path: str, data: Any) -> None:
    atomic_write_text(path, json.dumps(data, indent=2, ensure_ascii=False, sort_keys=True) + "\n")


def quarantine_corrupt(path: str) -> Optional[str]:
    """Rename an unreadable file to `<name>.<utc stamp>.corrupt.json` so it can be inspected later."""
    target = f"{path}.{time.strftime('%Y%m%d_%H%M%S', time.gmtime())}.corrupt.json"
    try:
        os.replace(path, target)
    except OSError:
        return None
    return target


def load_or_default(path: str, default: Dict[str, Any]) -> ReadResult:
    """
    Missing file: write `default` and use it.
    Unreadable file: move it aside, write `default`, flag the result as recovered.
    """
    rr = read_json_file(path)
    if rr.ok:
        return rr
    recovered = rr.error != "missing"
    if recovered:
        quarantine_corrupt(path)
    atomic_write_json(path, default)
    return ReadResult(ok=True, data=dict(default), error=rr.error if recovered else None, was_recovered=recovered)
