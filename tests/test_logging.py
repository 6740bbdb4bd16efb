"""
Tests for structured logging and sensitive-data masking.
"""

import logging

from dysapp.util.logging import StructuredLogger, mask_sensitive_info, sanitize_payload


class TestMasking:

    def test_masks_api_keys(self):
        message = "key=AIza" + "x" * 35 + " rejected"
        assert mask_sensitive_info(message) == "key=***API_KEY*** rejected"

    def test_masks_emails_and_paths(self):
        masked = mask_sensitive_info("owner jane.doe@example.com wrote /var/lib/dysapp/data.db")

        assert "jane.doe" not in masked
        assert "/var/lib" not in masked
        assert "***EMAIL***" in masked
        assert "***PATH***" in masked

    def test_leaves_plain_text(self):
        assert mask_sensitive_info("ratio 3/4 is fine") == "ratio 3/4 is fine"

    def test_sanitize_payload_redacts_and_truncates(self):
        payload = {
            "image_data": "iVBORw0KGgo...",
            "nested": [{"embedding": [0.1, 0.2]}],
            "overall_analysis": "x" * 150,
            "overall_score": 80,
        }

        sanitized = sanitize_payload(payload)

        assert sanitized["image_data"] == "[REDACTED]"
        assert sanitized["nested"][0]["embedding"] == "[REDACTED]"
        assert sanitized["overall_analysis"] == "x" * 100 + "..."
        assert sanitized["overall_score"] == 80


class TestStructuredLogger:

    def test_log_operation_format(self, caplog):
        structured = StructuredLogger("dysapp.test.operation")

        with caplog.at_level(logging.INFO, logger="dysapp.test.operation"):
            structured.log_operation("store.put", "success", {"record_id": "abc"})

        assert "Operation: store.put, Status: success, Details: {'record_id': 'abc'}" in caplog.text

    def test_upstream_rejection_is_error_and_redacted(self, caplog):
        structured = StructuredLogger("dysapp.test.rejection")

        with caplog.at_level(logging.ERROR, logger="dysapp.test.rejection"):
            structured.log_upstream_rejection(["missing required field: fix_scope"],
                                              {"image_data": "secret-bytes", "overall_score": 80})

        record = caplog.records[-1]
        assert record.levelno == logging.ERROR
        assert "upstream.rejected" in record.getMessage()
        assert "secret-bytes" not in record.getMessage()

    def test_override_and_rate_limit_are_warnings(self, caplog):
        structured = StructuredLogger("dysapp.test.warnings")

        with caplog.at_level(logging.INFO, logger="dysapp.test.warnings"):
            structured.log_fix_scope_override("DetailTuning", "StructureRebuild", "critical_structure", "reason")
            structured.log_rate_limited("user-a", "analyze_design")

        assert [r.levelno for r in caplog.records] == [logging.WARNING, logging.WARNING]
        assert "fix_scope.override" in caplog.records[0].getMessage()
        assert "rate_limit.denied" in caplog.records[1].getMessage()

    def test_log_error_masks_message(self, caplog):
        structured = StructuredLogger("dysapp.test.errors")

        with caplog.at_level(logging.ERROR, logger="dysapp.test.errors"):
            structured.log_error("store.put", RuntimeError("cannot open /srv/data/dysapp.db"))

        assert "/srv/data" not in caplog.text
        assert "RuntimeError" in caplog.text
