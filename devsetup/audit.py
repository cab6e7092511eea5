"""
Operation audit logging with structured JSON-Lines.
"""
import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from .config import get_config_dir

MASKED_KEYS = ["password", "token", "secret", "key"]


class AuditLogger:
    """Writes structured JSONL audit records of runs, restores and prunes."""
    def __init__(self, log_file: Optional[Path] = None, enabled: bool = True):
        self.enabled = enabled
        self._log_file = log_file

    @property
    def log_file(self) -> Path:
        if self._log_file is None:
            self._log_file = get_config_dir() / "audit.jsonl"
        return self._log_file

    def log(self, event_type: str, **kwargs: Any) -> None:
        """Log a structured operation event. Never raises."""
        if not self.enabled:
            return
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event": event_type,
            "details": {k: str(v) if isinstance(v, Path) else v for k, v in kwargs.items()},
        }

        for key in MASKED_KEYS:
            if key in entry["details"]:
                entry["details"][key] = "*****"

        try:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)
            with self.log_file.open("a", encoding="utf-8") as f:
                f.write(json.dumps(entry) + "\n")
        except OSError as e:
            sys.stderr.write(f"[devsetup audit] Failed to write log: {e}\n")

def get_audit_log(last_n: int = 50, log_file: Optional[Path] = None) -> list[Dict[str, Any]]:
    """Retrieve the last N events from the audit log."""
    log_file = log_file or get_config_dir(create=False) / "audit.jsonl"
    if not log_file.exists():
        return []

    with log_file.open("r", encoding="utf-8") as f:
        lines = f.readlines()

    parsed = []
    for line in lines[-last_n:]:
        if not line.strip():
            continue
        try:
            parsed.append(json.loads(line))
        except json.JSONDecodeError:
            continue
    return parsed
