"""Optional JSONL audit trail of per-block verification results."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, TextIO

from .models import BlockVerificationResult


class VerificationJournal:
    """
    One ``block`` record per verified rollup block, in verification order,
    and a single ``halt`` record carrying the mismatch. Records are flushed
    as they are written.
    """

    def __init__(self, path: str) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._file: Optional[TextIO] = self._path.open("a", encoding="utf-8")

    @property
    def path(self) -> Path:
        return self._path

    @property
    def closed(self) -> bool:
        return self._file is None

    def record_block(self, result: BlockVerificationResult) -> None:
        self._append({"kind": "block", "recordedAt": _now(), **result.to_dict()})

    def record_halt(self, mismatch: BlockVerificationResult) -> None:
        self._append({"kind": "halt", "recordedAt": _now(), "mismatch": mismatch.to_dict()})

    def _append(self, record: Dict[str, Any]) -> None:
        if self._file is None:
            raise ValueError(f"verification journal {self._path} is closed")
        self._file.write(json.dumps(record, separators=(",", ":")) + "\n")
        self._file.flush()

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None

    def __enter__(self) -> "VerificationJournal":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()
