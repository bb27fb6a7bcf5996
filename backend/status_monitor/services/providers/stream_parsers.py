"""
流式响应解析器

每种 provider 一个独立的增量解析器：
- feed(chunk): 接收任意切分的字节/文本块（可能在行中间断开）
- done: 流是否已经发出结束信号（OpenAI 的 [DONE]）
- finish(): 流结束时冲刷缓冲区，返回累计文本

解析器对畸形内容保持宽容：无法解析的片段直接跳过，永远不抛异常。
内容本身对健康检查并不重要，只要能完整消费流即可。
"""

from __future__ import annotations

import codecs
import json
from abc import ABC, abstractmethod
from typing import Any


def _first(items: Any) -> Any:
    if isinstance(items, list) and items:
        return items[0]
    return None


class StreamParser(ABC):
    """行缓冲基类：负责解码与按换行切分，子类只处理完整行"""

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._parts: list[str] = []
        self.done = False
        self.events = 0

    @property
    def text(self) -> str:
        return "".join(self._parts)

    def feed(self, chunk: bytes | str) -> None:
        if self.done or not chunk:
            return
        if isinstance(chunk, bytes):
            chunk = self._decoder.decode(chunk)
        self._buffer += chunk
        lines = self._buffer.split("\n")
        # 最后一段可能不完整，留到下一个 chunk
        self._buffer = lines.pop()
        for line in lines:
            if self.done:
                break
            self._handle_line(line.rstrip("\r"))

    def finish(self) -> str:
        tail = self._buffer + self._decoder.decode(b"", final=True)
        self._buffer = ""
        if tail.strip() and not self.done:
            self._handle_line(tail.rstrip("\r"))
        return self.text

    @abstractmethod
    def _handle_line(self, line: str) -> None:
        ...

    @staticmethod
    def _sse_data(line: str) -> str | None:
        stripped = line.strip()
        if not stripped.startswith("data:"):
            return None
        return stripped[5:].strip()

    @staticmethod
    def _loads(data: str) -> Any:
        try:
            return json.loads(data)
        except (json.JSONDecodeError, ValueError):
            return None


class OpenAIStreamParser(StreamParser):
    """
    OpenAI SSE：逐行 `data: <json>`，以 `data: [DONE]` 结束
    - Chat Completions: choices[0].delta.content
    - Responses API: type=response.output_text.delta 的 delta，response.completed 视为结束
    """

    def _handle_line(self, line: str) -> None:
        data = self._sse_data(line)
        if data is None:
            return
        if data == "[DONE]":
            self.done = True
            return
        parsed = self._loads(data)
        if not isinstance(parsed, dict):
            return
        self.events += 1

        event_type = parsed.get("type")
        if event_type == "response.output_text.delta":
            delta = parsed.get("delta")
            if isinstance(delta, str):
                self._parts.append(delta)
            return
        if event_type == "response.completed":
            self.done = True
            return

        choice = _first(parsed.get("choices"))
        if isinstance(choice, dict):
            delta = choice.get("delta")
            content = delta.get("content") if isinstance(delta, dict) else None
            if isinstance(content, str):
                self._parts.append(content)


class AnthropicStreamParser(StreamParser):
    """
    Anthropic SSE：逐行 `data: <json>`，只有 content_block_delta 事件贡献文本（delta.text）
    无显式结束标记，以 EOF 为准
    """

    def _handle_line(self, line: str) -> None:
        data = self._sse_data(line)
        if data is None:
            return
        parsed = self._loads(data)
        if not isinstance(parsed, dict):
            return
        self.events += 1
        if parsed.get("type") != "content_block_delta":
            return
        delta = parsed.get("delta")
        text = delta.get("text") if isinstance(delta, dict) else None
        if isinstance(text, str):
            self._parts.append(text)


class GeminiStreamParser(StreamParser):
    """
    Gemini：换行分隔的 JSON 对象（无 data: 前缀）
    跨 chunk 缓冲，最后一段可能被截断，留到下一个 chunk；EOF 时解析剩余内容
    """

    def _handle_line(self, line: str) -> None:
        # 数组形式的输出会带上 [ , ] 等分隔符
        candidate = line.strip().lstrip("[,").rstrip(",]").strip()
        if not candidate:
            return
        parsed = self._loads(candidate)
        if not isinstance(parsed, dict):
            return
        self.events += 1
        first_candidate = _first(parsed.get("candidates"))
        if not isinstance(first_candidate, dict):
            return
        content = first_candidate.get("content")
        part = _first(content.get("parts")) if isinstance(content, dict) else None
        text = part.get("text") if isinstance(part, dict) else None
        if isinstance(text, str):
            self._parts.append(text)
