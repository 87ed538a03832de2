"""
Tests for the best-effort audit log.
"""

import gc
import json
import re

from publisher_config_api.audit import AuditLogger

LINE_PATTERN = re.compile(r"^(?P<timestamp>\S+) - (?P<action>[A-Z_]+): (?P<details>\{.*\})$")


class TestAuditLogger:
    def test_appends_timestamped_lines(self, tmp_path):
        audit = AuditLogger(tmp_path / "logs" / "audit.log")

        audit.log("CREATE", {"filename": "acme.json", "publisherId": "acme"})
        audit.log("DELETE", {"filename": "acme.json"})
        audit.close()

        lines = (tmp_path / "logs" / "audit.log").read_text(encoding="utf-8").splitlines()
        assert len(lines) == 2
        match = LINE_PATTERN.match(lines[0])
        assert match is not None
        assert re.match(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}", match["timestamp"])
        assert match["action"] == "CREATE"
        assert json.loads(match["details"]) == {"filename": "acme.json", "publisherId": "acme"}
        assert LINE_PATTERN.match(lines[1])["action"] == "DELETE"

    def test_rotates_past_size_threshold(self, tmp_path):
        path = tmp_path / "audit.log"
        audit = AuditLogger(path, max_bytes=200)

        for i in range(20):
            audit.log("UPDATE", {"filename": f"publisher-{i}.json"})
        audit.close()

        rotated = tmp_path / "audit.log.1"
        assert rotated.exists()
        assert path.stat().st_size <= 200
        assert "publisher-19.json" in path.read_text(encoding="utf-8")

    def test_unusable_path_disables_logging_without_raising(self, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("", encoding="utf-8")

        audit = AuditLogger(blocker / "audit.log")

        assert not audit.enabled
        audit.log("CREATE", {"filename": "acme.json"})

    def test_write_failures_are_swallowed(self, tmp_path):
        path = tmp_path / "audit.log"
        audit = AuditLogger(path)
        audit.log("CREATE", {"filename": "acme.json"})

        # Replace the log file with a directory so the next open fails.
        audit.close()
        audit = AuditLogger(path)
        path.unlink()
        path.mkdir()

        audit.log("DELETE", {"filename": "acme.json"})

    def test_unserializable_details_are_stringified(self, tmp_path):
        path = tmp_path / "audit.log"
        audit = AuditLogger(path)

        audit.log("UPDATE", {"path": tmp_path})
        audit.close()

        assert str(tmp_path) in path.read_text(encoding="utf-8")

    def test_successive_loggers_write_only_to_their_own_file(self, tmp_path):
        paths = [tmp_path / f"audit-{i}.log" for i in range(5)]
        for i, path in enumerate(paths):
            audit = AuditLogger(path)
            audit.log("CREATE", {"filename": f"p{i}.json"})
            # Dropped without close(), the way an app instance is discarded.
            del audit
            gc.collect()

        for i, path in enumerate(paths):
            lines = path.read_text(encoding="utf-8").splitlines()
            assert len(lines) == 1
            assert json.loads(LINE_PATTERN.match(lines[0])["details"]) == {"filename": f"p{i}.json"}
