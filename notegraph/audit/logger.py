"""
JSONL audit trail for notegraph.

Every sync, resolution decision, model call and document failure is one
JSON line ``{ts, session_id, category, action, details, duration_ms}`` in a
dated file under ``<vault>/.notegraph/logs``. The CLI reads it back for the
error summary in ``status`` and the tail of ``process``.
"""

import json
import traceback
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

_logger: Optional["AuditLogger"] = None


class AuditLogger:
    """Append-only JSONL log with per-category action vocabularies."""

    CATEGORIES = {
        "session": ("start", "complete"),
        "sync": ("new", "modified", "deleted", "complete"),
        "document": ("processed", "skipped", "errored", "truncated", "relink"),
        "resolve": ("match", "create", "aliases"),
        "relationship": ("create", "existing", "dropped"),
        "llm": ("request", "complete", "parse_failed", "keywords_failed"),
        "ask": ("seeds", "no_results", "answer"),
        "graph": ("reset",),
        "error": ("exception",),
    }

    def __init__(
        self,
        log_path: Path,
        retention_days: int = 30,
        session_id: Optional[str] = None,
    ):
        """
        Args:
            log_path: JSONL file to append to
            retention_days: Entries older than this are pruned on open (0 keeps all)
            session_id: Tag for entries of this run (defaults to a timestamp)
        """
        self.log_path = Path(log_path)
        self.retention_days = retention_days
        self.session_id = session_id or datetime.now().strftime("%Y%m%d-%H%M%S")

        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        if retention_days > 0:
            self.prune(datetime.now() - timedelta(days=retention_days))

    def log(
        self,
        category: str,
        action: str,
        details: Optional[Dict[str, Any]] = None,
        duration_ms: Optional[int] = None,
    ) -> None:
        """Append one entry.

        Raises:
            ValueError: category or action outside ``CATEGORIES``
        """
        actions = self.CATEGORIES.get(category)
        if actions is None:
            raise ValueError(f"Unknown audit category: {category}")
        if action not in actions:
            raise ValueError(f"Unknown action for {category}: {action}")

        entry = self._entry(category, action, details)
        if duration_ms is not None:
            entry["duration_ms"] = duration_ms
        self._append(entry)

    def log_error(self, error: BaseException, context: Optional[Dict[str, Any]] = None) -> None:
        """Record an exception with its traceback and optional context."""
        details: Dict[str, Any] = {
            "error_type": type(error).__name__,
            "error_message": str(error),
            "traceback": "".join(
                traceback.format_exception(type(error), error, error.__traceback__)
            ),
        }
        if context:
            details["context"] = context
        self._append(self._entry("error", "exception", details))

    def _entry(self, category: str, action: str, details: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        entry: Dict[str, Any] = {
            "ts": datetime.now().isoformat(),
            "session_id": self.session_id,
            "category": category,
            "action": action,
        }
        if details:
            entry["details"] = details
        return entry

    def _append(self, entry: Dict[str, Any]) -> None:
        with open(self.log_path, "a") as f:
            f.write(json.dumps(entry, default=str) + "\n")

    def _read(self) -> Iterator[Dict[str, Any]]:
        """Entries in file order; unparseable lines are skipped."""
        if not self.log_path.exists():
            return
        with open(self.log_path) as f:
            for line in f:
                try:
                    yield json.loads(line)
                except json.JSONDecodeError:
                    continue

    def prune(self, cutoff: datetime) -> int:
        """Drop entries stamped before ``cutoff``. Returns how many went."""
        if not self.log_path.exists():
            return 0

        cutoff_str = cutoff.isoformat()
        kept: List[str] = []
        removed = 0
        with open(self.log_path) as f:
            for line in f:
                try:
                    ts = json.loads(line).get("ts", "")
                except json.JSONDecodeError:
                    kept.append(line)
                    continue
                if ts >= cutoff_str:
                    kept.append(line)
                else:
                    removed += 1

        if removed:
            with open(self.log_path, "w") as f:
                f.writelines(kept)
        return removed

    def get_entries(
        self,
        category: Optional[str] = None,
        action: Optional[str] = None,
        session_id: Optional[str] = None,
        limit: int = 1000,
    ) -> List[Dict[str, Any]]:
        """Matching entries, newest first, at most ``limit``."""
        matches = [
            e
            for e in self._read()
            if (category is None or e.get("category") == category)
            and (action is None or e.get("action") == action)
            and (session_id is None or e.get("session_id") == session_id)
        ]
        return matches[::-1][:limit]

    def get_session_stats(self) -> Dict[str, Any]:
        """Entry counts per category for this logger's session."""
        by_category: Dict[str, int] = {}
        for entry in self.get_entries(session_id=self.session_id, limit=10**9):
            cat = entry.get("category", "unknown")
            by_category[cat] = by_category.get(cat, 0) + 1
        return {
            "session_id": self.session_id,
            "total_entries": sum(by_category.values()),
            "by_category": by_category,
            "errors": by_category.get("error", 0),
        }


def get_logger() -> Optional[AuditLogger]:
    return _logger


def init_logger(
    log_path: Path,
    retention_days: int = 30,
    session_id: Optional[str] = None,
) -> AuditLogger:
    """Install the module-level logger at an explicit file path."""
    global _logger
    _logger = AuditLogger(log_path, retention_days, session_id)
    return _logger


def init_audit_logger(
    log_dir: Path,
    retention_days: int = 30,
    session_id: Optional[str] = None,
) -> AuditLogger:
    """Install the module-level logger on today's file in ``log_dir``."""
    log_file = Path(log_dir) / f"audit_{datetime.now().strftime('%Y%m%d')}.jsonl"
    return init_logger(log_file, retention_days, session_id)


def close_logger() -> None:
    global _logger
    _logger = None


def log_audit(
    category: str,
    action: str,
    details: Optional[Dict[str, Any]] = None,
    duration_ms: Optional[int] = None,
) -> None:
    """Log through the module-level logger; no-op when none is installed."""
    if _logger:
        _logger.log(category, action, details, duration_ms)


def log_error(error: BaseException, context: Optional[Dict[str, Any]] = None) -> None:
    """Log an exception through the module-level logger; no-op when none is installed."""
    if _logger:
        _logger.log_error(error, context)
