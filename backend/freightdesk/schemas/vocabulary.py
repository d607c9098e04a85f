"""
Published status/priority vocabulary.

Clients use this to render status pickers and to check that they were built
against a compatible vocabulary version.
"""

from pydantic import BaseModel


class StatusEntry(BaseModel):
    name: str
    label: str
    transitions: list[str]
    tags: list[str]
    terminal: bool


class VocabularyResponse(BaseModel):
    version: int
    initial: str
    statuses: list[StatusEntry]
    aliases: dict[str, str]
    priorities: list[str]
    default_priority: str
