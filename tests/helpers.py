"""Test doubles for the Gemini transport."""

from __future__ import annotations

import json
from typing import Iterable, List, Tuple, Union

from tarotgemini.llm import BackendResponse, GenerationBackend


class ScriptedBackend(GenerationBackend):
    """Replays canned responses (or raises canned exceptions) in order."""

    def __init__(self, script: Iterable[Union[BackendResponse, BaseException]] = (), repeat_last: bool = False):
        self.script = list(script)
        self.repeat_last = repeat_last
        self.calls: List[Tuple[str, int]] = []
        self.closed = False

    async def generate(self, prompt: str, max_output_tokens: int) -> BackendResponse:
        self.calls.append((prompt, max_output_tokens))
        if not self.script:
            raise AssertionError("backend called more times than scripted")
        item = self.script[0] if (self.repeat_last and len(self.script) == 1) else self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    async def aclose(self) -> None:
        self.closed = True


def gemini_body(text: str, finish_reason: str = "STOP") -> str:
    return json.dumps({
        "candidates": [
            {
                "content": {"parts": [{"text": text}], "role": "model"},
                "finishReason": finish_reason,
            }
        ]
    })


def ok(body: str) -> BackendResponse:
    return BackendResponse(status_code=200, body=body)


def status(code: int, body: str = "") -> BackendResponse:
    return BackendResponse(status_code=code, body=body)
