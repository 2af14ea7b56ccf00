"""User-facing notifications raised by the interpreter and upload orchestrator."""
from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import List, Optional

SUCCESS = "success"
INFO = "info"
WARNING = "warning"
ERROR = "error"

_ids = itertools.count(1)


@dataclass
class Notice:
    level: str
    message: str
    title: str = ""
    dismissible: bool = True
    id: int = field(default_factory=lambda: next(_ids))


class NoticeBoard:
    """Collects notices until the surrounding UI dismisses them."""

    def __init__(self) -> None:
        self._notices: List[Notice] = []

    def __iter__(self):
        return iter(list(self._notices))

    def __len__(self) -> int:
        return len(self._notices)

    def post(self, level: str, message: str, title: str = "") -> Notice:
        notice = Notice(level=level, message=message, title=title)
        self._notices.append(notice)
        return notice

    def success(self, message: str, title: str = "") -> Notice:
        return self.post(SUCCESS, message, title)

    def error(self, message: str, title: str = "") -> Notice:
        return self.post(ERROR, message, title)

    def warning(self, message: str, title: str = "") -> Notice:
        return self.post(WARNING, message, title)

    def dismiss(self, notice_id: int) -> None:
        self._notices = [notice for notice in self._notices if notice.id != notice_id]

    def clear(self) -> None:
        self._notices = []

    def latest(self, level: Optional[str] = None) -> Optional[Notice]:
        for notice in reversed(self._notices):
            if level is None or notice.level == level:
                return notice
        return None
