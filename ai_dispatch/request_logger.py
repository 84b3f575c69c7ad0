"""
Dispatch Request Logger

按 channel 记录 JSONL 日志：
- provider channel: 每次供应商调用（模型、消息数、预览、token、耗时、状态）
- router / admission / metering: 回退、准入拒绝、扣费与计数事件

文件路径: {AI_DISPATCH_LOG_DIR}/{channel}/{YYYY-MM-DD}.jsonl
"""

import json
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

PREVIEW_CHARS = 100

_TRUTHY = ("true", "1", "yes", "on")


def logging_enabled_from_env() -> bool:
    """AI_DISPATCH_LOGGING，默认开启"""
    return os.getenv("AI_DISPATCH_LOGGING", "true").strip().lower() in _TRUTHY


def _preview(text: Optional[str]) -> Optional[str]:
    return text[:PREVIEW_CHARS] if text else None


class RequestLogger:
    """单个 channel 的 JSONL 日志记录器"""

    def __init__(self, channel: str, enabled: Optional[bool] = None, log_root: Optional[Path] = None):
        """
        Args:
            channel: 日志通道名称（provider 名或 router/admission/metering）
            enabled: 是否启用，None 表示读取 AI_DISPATCH_LOGGING
            log_root: 日志根目录，None 表示读取 AI_DISPATCH_LOG_DIR
        """
        self.channel = channel
        self.enabled = logging_enabled_from_env() if enabled is None else enabled
        root = log_root if log_root is not None else os.getenv("AI_DISPATCH_LOG_DIR", "logs")
        self.channel_log_dir = Path(root) / channel

        if self.enabled:
            self.channel_log_dir.mkdir(parents=True, exist_ok=True)

    def _emit(self, fields: dict[str, Any]) -> None:
        if not self.enabled:
            return
        entry = {"timestamp": datetime.now().isoformat(), "channel": self.channel, **fields}
        log_file = self.channel_log_dir / f"{datetime.now():%Y-%m-%d}.jsonl"
        try:
            with open(log_file, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry, ensure_ascii=False, default=str) + "\n")
        except OSError as e:
            # 日志失败不影响主流程
            print(f"Warning: Failed to write {self.channel} log: {e}")

    def log_request(
        self,
        model: str,
        prompt: str,
        message_count: int,
        response_text: Optional[str],
        input_tokens: Optional[int],
        output_tokens: Optional[int],
        duration_ms: float,
        success: bool,
        error_message: Optional[str] = None,
        status_code: Optional[int] = None,
        **extra_fields,
    ) -> None:
        """
        记录一次 provider 调用

        Args:
            model: 供应商模型名
            prompt: 最后一条用户消息（只保留预览）
            message_count: 对话消息条数
            response_text: 响应文本
            input_tokens: 输入 token 数
            output_tokens: 输出 token 数
            duration_ms: 耗时（毫秒）
            success: 是否成功
            error_message: 失败原因
            status_code: HTTP 状态码
        """
        self._emit({
            "model": model,
            "message_count": message_count,
            "prompt_length": len(prompt or ""),
            "prompt_preview": _preview(prompt),
            "response_length": len(response_text or ""),
            "response_preview": _preview(response_text),
            "input_tokens": input_tokens,
            "output_tokens": output_tokens,
            "total_tokens": (input_tokens or 0) + (output_tokens or 0),
            "duration_ms": round(duration_ms, 2),
            "success": success,
            "error_message": error_message,
            "status_code": status_code,
            **extra_fields,
        })

    def log_event(self, event: str, success: bool = True, **fields) -> None:
        """记录业务事件（fallback、准入拒绝、扣费、计数失败等）"""
        self._emit({"event": event, "success": success, **fields})


# channel -> logger
_loggers: dict[str, RequestLogger] = {}


def get_logger(channel: str) -> RequestLogger:
    """获取或创建 channel 对应的日志记录器"""
    if channel not in _loggers:
        _loggers[channel] = RequestLogger(channel)
    return _loggers[channel]
