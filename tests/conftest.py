"""Shared fixtures and fakes for the reorg test suite."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable, List, Sequence, Union

import pytest

from reorg.ingestion.models import FileDescriptor
from reorg.providers.base import ModelProvider, PromptContext
from reorg.providers.errors import ProviderError

ScriptedReply = Union[str, BaseException]


class FakeProvider(ModelProvider):
    """Replay scripted replies and record every prompt context received."""

    name = "fake"

    def __init__(self, replies: Iterable[ScriptedReply] = ()) -> None:
        self.replies: List[ScriptedReply] = list(replies)
        self.contexts: List[PromptContext] = []

    async def invoke(self, context: PromptContext) -> str:
        self.contexts.append(context)
        if not self.replies:
            raise ProviderError("No scripted reply left", provider=self.name)
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply

    @property
    def last_prompt(self) -> str:
        return self.contexts[-1].messages[-1].content


def make_descriptor(
    name: str,
    *,
    size: int = 1024,
    modified: datetime | None = None,
    directory: Path = Path("/data/inbox"),
) -> FileDescriptor:
    suffix = Path(name).suffix.lower()
    return FileDescriptor(
        path=directory / name,
        name=name,
        extension=suffix,
        size=size,
        modified=modified or datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc),
    )


def categories_reply(categories: dict[str, list[str]], **extra: Any) -> str:
    document = {"discoveredCategories": categories, "reasoning": "grouped by content"}
    document.update(extra)
    return f"Here is what I found.\n```json\n{json.dumps(document)}\n```"


def suggestions_reply(entries: Sequence[tuple[str, str]], *, confidence: float = 0.9) -> str:
    document = {
        "suggestions": [
            {
                "fileName": name,
                "suggestedPath": path,
                "reason": "matches category",
                "confidence": confidence,
                "category": path.split("/")[0],
            }
            for name, path in entries
        ],
        "reasoning": "one folder per category",
    }
    return f"```json\n{json.dumps(document)}\n```"


@pytest.fixture
def descriptor_factory() -> Callable[..., FileDescriptor]:
    return make_descriptor


@pytest.fixture
def sample_files() -> List[FileDescriptor]:
    return [
        make_descriptor("a.pdf", size=2048),
        make_descriptor("b.jpg", size=4096),
        make_descriptor("c.txt", size=12),
    ]
