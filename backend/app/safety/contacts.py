"""
In-memory ordered contact list.

Duplicates are allowed and insertion order is kept. Entries are stored
exactly as entered once they pass validation.
"""

from __future__ import annotations

import logging
import re
from typing import Iterator, List, Tuple

from backend.app.core.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

EMAIL_SHAPE = re.compile(r"\S+@\S+\.\S+")


def is_valid_contact(value: str) -> bool:
    return bool(value.strip()) and EMAIL_SHAPE.search(value) is not None


class ContactStore:
    def __init__(self) -> None:
        self._contacts: List[str] = []

    def add(self, contact: str) -> str:
        if not is_valid_contact(contact):
            raise ValidationError(
                "Please enter a valid email address.", field="contact",
            )
        self._contacts.append(contact)
        logger.info("Contact added (%d total)", len(self._contacts), extra={"contact": contact})
        return contact

    def remove(self, index: int) -> str:
        if not 0 <= index < len(self._contacts):
            raise NotFoundError("Contact", index=index)
        contact = self._contacts.pop(index)
        logger.info("Contact removed (%d total)", len(self._contacts), extra={"contact": contact})
        return contact

    def list(self) -> Tuple[str, ...]:
        return tuple(self._contacts)

    def clear(self) -> None:
        self._contacts.clear()

    def __len__(self) -> int:
        return len(self._contacts)

    def __iter__(self) -> Iterator[str]:
        return iter(tuple(self._contacts))
