"""Tests for the JSONL audit trail."""

import json
from datetime import datetime, timedelta

import pytest

from notegraph.audit import (
    AuditLogger,
    close_logger,
    get_logger,
    init_audit_logger,
    log_audit,
    log_error,
)


def _read_lines(path):
    return [json.loads(line) for line in path.read_text().splitlines()]


class TestAuditLogger:
    def test_log_writes_jsonl(self, tmp_path):
        logger = AuditLogger(tmp_path / "audit.jsonl", session_id="s1")
        logger.log("sync", "complete", {"new": 2}, duration_ms=15)

        [entry] = _read_lines(tmp_path / "audit.jsonl")
        assert entry["session_id"] == "s1"
        assert entry["category"] == "sync"
        assert entry["action"] == "complete"
        assert entry["details"] == {"new": 2}
        assert entry["duration_ms"] == 15

    def test_details_omitted_when_empty(self, tmp_path):
        logger = AuditLogger(tmp_path / "audit.jsonl")
        logger.log("session", "start")
        [entry] = _read_lines(tmp_path / "audit.jsonl")
        assert "details" not in entry
        assert "duration_ms" not in entry

    def test_log_error_records_traceback(self, tmp_path):
        logger = AuditLogger(tmp_path / "audit.jsonl")
        try:
            raise ValueError("bad document")
        except ValueError as e:
            logger.log_error(e, {"document_id": "d1"})

        [entry] = logger.get_entries(category="error")
        assert entry["details"]["error_type"] == "ValueError"
        assert entry["details"]["error_message"] == "bad document"
        assert "Traceback" in entry["details"]["traceback"]
        assert entry["details"]["context"] == {"document_id": "d1"}

    def test_get_entries_filters_newest_first(self, tmp_path):
        logger = AuditLogger(tmp_path / "audit.jsonl")
        logger.log("resolve", "create", {"name": "a"})
        logger.log("resolve", "match", {"name": "b"})
        logger.log("resolve", "create", {"name": "c"})
        logger.log("llm", "request")

        created = logger.get_entries(category="resolve", action="create")
        assert [e["details"]["name"] for e in created] == ["c", "a"]
        assert len(logger.get_entries(limit=2)) == 2

    def test_get_entries_by_session(self, tmp_path):
        path = tmp_path / "audit.jsonl"
        AuditLogger(path, session_id="first").log("sync", "new")
        second = AuditLogger(path, session_id="second")
        second.log("sync", "complete")
        assert [e["action"] for e in second.get_entries(session_id="second")] == ["complete"]
        assert len(second.get_entries()) == 2

    def test_unknown_category_rejected(self, tmp_path):
        logger = AuditLogger(tmp_path / "audit.jsonl")
        with pytest.raises(ValueError, match="Unknown audit category"):
            logger.log("metrics", "tick")
        with pytest.raises(ValueError, match="Unknown action for sync"):
            logger.log("sync", "exploded")
        assert not (tmp_path / "audit.jsonl").exists()

    def test_every_action_is_accepted(self, tmp_path):
        logger = AuditLogger(tmp_path / "audit.jsonl")
        for category, actions in AuditLogger.CATEGORIES.items():
            for action in actions:
                logger.log(category, action)
        assert len(logger.get_entries(limit=100)) == sum(len(a) for a in AuditLogger.CATEGORIES.values())

    def test_retention_prunes_old_entries(self, tmp_path):
        path = tmp_path / "audit.jsonl"
        old = (datetime.now() - timedelta(days=40)).isoformat()
        fresh = datetime.now().isoformat()
        path.write_text(
            json.dumps({"ts": old, "category": "sync", "action": "new"}) + "\n"
            + json.dumps({"ts": fresh, "category": "sync", "action": "new"}) + "\n"
            + "not json\n"
        )

        removed = AuditLogger(path, retention_days=0).prune(datetime.now() - timedelta(days=30))
        assert removed == 1
        assert AuditLogger(path, retention_days=30).prune(datetime.now() - timedelta(days=30)) == 0
        lines = path.read_text().splitlines()
        assert len(lines) == 2
        assert json.loads(lines[0])["ts"] == fresh

    def test_session_stats(self, tmp_path):
        logger = AuditLogger(tmp_path / "audit.jsonl", session_id="run")
        logger.log("sync", "new")
        logger.log("sync", "complete")
        logger.log_error(RuntimeError("x"))

        stats = logger.get_session_stats()
        assert stats["total_entries"] == 3
        assert stats["by_category"] == {"sync": 2, "error": 1}
        assert stats["errors"] == 1


class TestModuleLogger:
    def test_noop_without_logger(self):
        close_logger()
        assert get_logger() is None
        log_audit("sync", "new", {"path": "a.md"})
        log_error(RuntimeError("ignored"))

    def test_dated_file_in_directory(self, tmp_path):
        logger = init_audit_logger(tmp_path / "logs", session_id="cli")
        log_audit("graph", "reset", {"documents": 3})

        assert get_logger() is logger
        assert logger.log_path.name == f"audit_{datetime.now().strftime('%Y%m%d')}.jsonl"
        [entry] = logger.get_entries()
        assert entry["details"] == {"documents": 3}

    def test_audit_log_fixture(self, audit_log):
        log_audit("document", "skipped", {"reason": "short"})
        assert audit_log.get_entries(category="document")[0]["action"] == "skipped"
