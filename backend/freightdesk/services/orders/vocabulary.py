"""Versioned status and priority vocabulary for the order lifecycle.

The set of order statuses, the legal transitions between them and the
behaviour attached to each status are configuration, not code. A vocabulary
is a pydantic model that can be loaded from JSON; the built-in default is
version 3 of the dispatch vocabulary:

- PENDING -> ASSIGNED, CANCELLED
- ASSIGNED -> IN_TRANSIT, CANCELLED
- IN_TRANSIT -> DELIVERED, RETURNED, CANCELLED
- DELIVERED, CANCELLED, RETURNED -> (terminal)

Labels from older vocabularies stay readable through ``aliases``; for
instance tracking events recorded as ``IN_PROGRESS`` fold to ``IN_TRANSIT``.
"""

import json
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, model_validator

from freightdesk.core.config import get_settings
from freightdesk.core.errors import UnknownPriorityError, UnknownStatusError
from freightdesk.core.logging import get_logger

logger = get_logger(__name__)


class StatusTag(str, Enum):
    """Behaviour attached to a status."""

    REQUIRES_ASSIGNMENT = "requires_assignment"
    MARKS_DELIVERY = "marks_delivery"
    ACTIVE = "active"
    CANCELS = "cancels"


class StatusDefinition(BaseModel):
    """One status label with its outgoing transitions and tags."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, max_length=32)
    display_name: Optional[str] = None
    transitions: list[str] = Field(default_factory=list)
    tags: set[StatusTag] = Field(default_factory=set)

    @property
    def is_terminal(self) -> bool:
        return not self.transitions

    @property
    def label(self) -> str:
        return self.display_name or self.name.replace("_", " ").title()


class StatusVocabulary(BaseModel):
    """
    Complete status/priority vocabulary.

    Lookups are case-insensitive and accept legacy aliases; everything
    returned is a canonical label of this version.
    """

    model_config = ConfigDict(extra="forbid")

    version: int = Field(..., ge=1)
    initial: str
    statuses: list[StatusDefinition] = Field(..., min_length=1)
    aliases: dict[str, str] = Field(default_factory=dict)
    priorities: list[str] = Field(..., min_length=1)
    default_priority: str

    _by_name: dict[str, StatusDefinition] = PrivateAttr(default_factory=dict)

    @model_validator(mode="after")
    def check_consistency(self) -> "StatusVocabulary":
        names = [s.name.upper() for s in self.statuses]
        if len(set(names)) != len(names):
            raise ValueError("Duplicate status names in vocabulary")

        known = set(names)
        if self.initial.upper() not in known:
            raise ValueError(f"Initial status {self.initial!r} is not defined")

        for status in self.statuses:
            undefined = [t for t in status.transitions if t.upper() not in known]
            if undefined:
                raise ValueError(
                    f"Status {status.name!r} transitions to undefined {undefined}"
                )

        for legacy, target in self.aliases.items():
            if legacy.upper() in known:
                raise ValueError(f"Alias {legacy!r} shadows a current status")
            if target.upper() not in known:
                raise ValueError(f"Alias {legacy!r} points to undefined {target!r}")

        priorities = [p.upper() for p in self.priorities]
        if self.default_priority.upper() not in priorities:
            raise ValueError(
                f"Default priority {self.default_priority!r} is not defined"
            )
        return self

    def model_post_init(self, __context) -> None:
        self._by_name = {s.name.upper(): s for s in self.statuses}

    # Status lookups

    @property
    def initial_status(self) -> str:
        return self.initial.upper()

    @property
    def status_names(self) -> list[str]:
        return [s.name.upper() for s in self.statuses]

    def is_known(self, label: Optional[str]) -> bool:
        if not label:
            return False
        key = label.strip().upper()
        return key in self._by_name or key in self.alias_map

    @property
    def alias_map(self) -> dict[str, str]:
        return {k.upper(): v.upper() for k, v in self.aliases.items()}

    def canonical(self, label: Optional[str]) -> str:
        """
        Resolve a label, possibly legacy, to its current canonical form.

        Raises:
            UnknownStatusError: If the label is neither a status nor an alias
        """
        key = (label or "").strip().upper()
        if key in self._by_name:
            return key
        alias_target = self.alias_map.get(key)
        if alias_target is not None:
            return alias_target
        raise UnknownStatusError(
            f"Unknown order status: {label}",
            status=label,
            valid_statuses=self.status_names,
            vocabulary_version=self.version,
        )

    def definition(self, label: str) -> StatusDefinition:
        return self._by_name[self.canonical(label)]

    def allowed_transitions(self, label: str) -> frozenset[str]:
        return frozenset(t.upper() for t in self.definition(label).transitions)

    def can_transition(self, current: str, target: str) -> bool:
        return self.canonical(target) in self.allowed_transitions(current)

    def has_tag(self, label: str, tag: StatusTag) -> bool:
        return tag in self.definition(label).tags

    def is_terminal(self, label: str) -> bool:
        return self.definition(label).is_terminal

    def requires_assignment(self, label: str) -> bool:
        return self.has_tag(label, StatusTag.REQUIRES_ASSIGNMENT)

    def marks_delivery(self, label: str) -> bool:
        return self.has_tag(label, StatusTag.MARKS_DELIVERY)

    @property
    def active_statuses(self) -> frozenset[str]:
        """Statuses in which an order holds its vehicle and driver."""
        return frozenset(
            s.name.upper() for s in self.statuses if StatusTag.ACTIVE in s.tags
        )

    def stored_labels(self, statuses: Iterable[str]) -> list[str]:
        """
        All labels that may be stored for the given canonical statuses.

        Rows written under an older vocabulary carry the legacy label, so
        queries over stored data must match aliases too.
        """
        wanted = {self.canonical(s) for s in statuses}
        labels = set(wanted)
        labels.update(k for k, v in self.alias_map.items() if v in wanted)
        return sorted(labels)

    def unknown_labels(self, labels: Iterable[Optional[str]]) -> list[str]:
        """Labels, e.g. distinct values read from storage, this version cannot parse."""
        return sorted({label for label in labels if label and not self.is_known(label)})

    # Priorities

    @property
    def priority_names(self) -> list[str]:
        return [p.upper() for p in self.priorities]

    def parse_priority(self, label: Optional[str]) -> str:
        """
        Validate a priority label, defaulting when empty.

        Raises:
            UnknownPriorityError: If the label is not a configured priority
        """
        if label is None or not label.strip():
            return self.default_priority.upper()
        key = label.strip().upper()
        if key not in self.priority_names:
            raise UnknownPriorityError(
                f"Unknown order priority: {label}",
                priority=label,
                valid_priorities=self.priority_names,
            )
        return key


DEFAULT_VOCABULARY = StatusVocabulary(
    version=3,
    initial="PENDING",
    statuses=[
        StatusDefinition(
            name="PENDING",
            transitions=["ASSIGNED", "CANCELLED"],
        ),
        StatusDefinition(
            name="ASSIGNED",
            transitions=["IN_TRANSIT", "CANCELLED"],
            tags={StatusTag.REQUIRES_ASSIGNMENT, StatusTag.ACTIVE},
        ),
        StatusDefinition(
            name="IN_TRANSIT",
            display_name="In Transit",
            transitions=["DELIVERED", "RETURNED", "CANCELLED"],
            tags={StatusTag.ACTIVE},
        ),
        StatusDefinition(
            name="DELIVERED",
            tags={StatusTag.MARKS_DELIVERY},
        ),
        StatusDefinition(
            name="CANCELLED",
            tags={StatusTag.CANCELS},
        ),
        StatusDefinition(name="RETURNED"),
    ],
    aliases={"IN_PROGRESS": "IN_TRANSIT"},
    priorities=["LOW", "NORMAL", "HIGH", "URGENT"],
    default_priority="NORMAL",
)


def load_vocabulary(path: Optional[str] = None) -> StatusVocabulary:
    """
    Load a vocabulary from a JSON file, or return the built-in default.

    Raises:
        FileNotFoundError: If ``path`` does not exist
        pydantic.ValidationError: If the file is not a consistent vocabulary
    """
    if not path:
        return DEFAULT_VOCABULARY

    raw = Path(path).read_text(encoding="utf-8")
    vocabulary = StatusVocabulary.model_validate(json.loads(raw))

    logger.info(
        "Status vocabulary loaded",
        path=path,
        version=vocabulary.version,
        statuses=vocabulary.status_names,
    )
    return vocabulary


@lru_cache
def get_vocabulary() -> StatusVocabulary:
    """Process-wide vocabulary selected by ``APP_STATUS_VOCABULARY_PATH``."""
    return load_vocabulary(get_settings().status_vocabulary_path)
