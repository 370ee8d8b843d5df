"""In-process stand-in for the OpenAI chat client."""

from __future__ import annotations

import json
from types import SimpleNamespace
from typing import Any


class FakeChatClient:
    """Expose ``chat.completions.create`` and replay queued replies.

    A queued exception is raised instead of returned; anything that is not a
    string is JSON-encoded first.
    """

    def __init__(self, *replies: Any) -> None:
        self.replies: list[Any] = list(replies)
        self.calls: list[dict[str, Any]] = []
        self.chat = SimpleNamespace(
            completions=SimpleNamespace(create=self._create)
        )

    def queue(self, *replies: Any) -> None:
        self.replies.extend(replies)

    def _create(self, **kwargs: Any) -> SimpleNamespace:
        self.calls.append(kwargs)
        if not self.replies:
            raise AssertionError("FakeChatClient has no queued reply")
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        if not isinstance(reply, str) and reply is not None:
            reply = json.dumps(reply)
        message = SimpleNamespace(content=reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])
