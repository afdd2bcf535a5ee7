# -*- coding: utf-8 -*-
from __future__ import annotations

import logging
import typing as t
from dataclasses import dataclass, field
from datetime import datetime, timezone

from syllabus_parser.pdf_utils import DATA_URL_MARKER

logger = logging.getLogger(__name__)


@dataclass
class StoredSyllabus:
    """The last syllabus PDF uploaded for a session, without its data URL prefix."""
    content: str
    filename: str
    uploaded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    has_events: bool = True

    @property
    def data_url(self) -> str:
        return f"data:application/pdf;{DATA_URL_MARKER}{self.content}"


MAX_SESSIONS = 1000


class SyllabusStore:
    """
    Single-slot store keyed by session: saving replaces the previous syllabus.

    At most ``max_sessions`` keys are kept; saving past the cap evicts the
    key that was saved least recently.
    """

    def __init__(self, max_sessions: int = MAX_SESSIONS) -> None:
        self._slots: dict[str, StoredSyllabus] = {}
        self.max_sessions = max_sessions

    def save(self, key: str, pdf_base64: str, filename: str, has_events: bool = True) -> StoredSyllabus:
        """Stores a syllabus for ``key``, replacing whatever was there.

        :param key: Session or user identifier.
        :param pdf_base64: Base64 PDF content, optionally as a data URL.
        :param filename: Original file name.
        :return: The stored record.
        """
        content = pdf_base64.split(DATA_URL_MARKER, 1)[1] if DATA_URL_MARKER in pdf_base64 else pdf_base64
        stored = StoredSyllabus(content=content, filename=filename, has_events=has_events)
        self._slots.pop(key, None)
        self._slots[key] = stored
        while len(self._slots) > self.max_sessions:
            evicted = next(iter(self._slots))
            del self._slots[evicted]
            logger.info("Evicted stored syllabus for session %s", evicted)
        return stored

    def get(self, key: str) -> t.Optional[StoredSyllabus]:
        return self._slots.get(key)

    def has(self, key: str) -> bool:
        return key in self._slots

    def clear(self, key: str) -> bool:
        """Removes the stored syllabus. Returns False if there was none."""
        return self._slots.pop(key, None) is not None
