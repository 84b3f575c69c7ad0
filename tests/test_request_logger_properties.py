"""
Property-based tests for JSONL request logging.

Feature: ai-dispatch
Property 18: 日志完整性
"""

import json
import tempfile
from pathlib import Path

from hypothesis import given, strategies as st, settings

from ai_dispatch.request_logger import RequestLogger


def read_entries(log_root: Path, channel: str) -> list[dict]:
    entries = []
    for log_file in sorted((log_root / channel).glob("*.jsonl")):
        for line in log_file.read_text(encoding="utf-8").splitlines():
            entries.append(json.loads(line))
    return entries


class TestRequestLogging:
    """
    Property 18: 日志完整性

    Every logged request is one JSON line holding the token counts and a
    bounded prompt preview.
    """

    @settings(max_examples=50)
    @given(
        prompt=st.text(max_size=300),
        input_tokens=st.integers(min_value=0, max_value=100_000),
        output_tokens=st.integers(min_value=0, max_value=100_000),
        success=st.booleans(),
    )
    def test_request_entries(self, prompt: str, input_tokens: int, output_tokens: int, success: bool):
        with tempfile.TemporaryDirectory() as tmp:
            logger = RequestLogger("groq", enabled=True, log_root=Path(tmp))
            logger.log_request(
                model="llama-3.3-70b-versatile",
                prompt=prompt,
                message_count=3,
                response_text="ok" if success else None,
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                duration_ms=12.3456,
                success=success,
                error_message=None if success else "API error: overloaded",
            )

            entries = read_entries(Path(tmp), "groq")

        assert len(entries) == 1
        entry = entries[0]
        assert entry["channel"] == "groq"
        assert entry["total_tokens"] == input_tokens + output_tokens
        assert entry["prompt_length"] == len(prompt)
        assert entry["prompt_preview"] is None or len(entry["prompt_preview"]) <= 100
        assert entry["duration_ms"] == 12.35
        assert entry["success"] == success

    def test_events(self):
        with tempfile.TemporaryDirectory() as tmp:
            logger = RequestLogger("metering", enabled=True, log_root=Path(tmp))
            logger.log_event("debit", user_id="u1", amount=300)
            logger.log_event("increment_failed", success=False, user_id="u1")

            entries = read_entries(Path(tmp), "metering")

        assert [e["event"] for e in entries] == ["debit", "increment_failed"]
        assert entries[0]["amount"] == 300
        assert entries[1]["success"] is False

    def test_disabled_logger_writes_nothing(self):
        with tempfile.TemporaryDirectory() as tmp:
            logger = RequestLogger("router", enabled=False, log_root=Path(tmp))
            logger.log_event("fallback_started")
            assert not (Path(tmp) / "router").exists()

    def test_environment_switch(self, monkeypatch):
        monkeypatch.setenv("AI_DISPATCH_LOGGING", "off")
        assert not RequestLogger("router").enabled
        monkeypatch.setenv("AI_DISPATCH_LOGGING", "yes")
        with tempfile.TemporaryDirectory() as tmp:
            monkeypatch.setenv("AI_DISPATCH_LOG_DIR", tmp)
            logger = RequestLogger("router")
            assert logger.enabled
            assert logger.channel_log_dir == Path(tmp) / "router"
