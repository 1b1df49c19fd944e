"""Department- and class-type-aware room candidate ordering.

Exclusivity is a hard filter: a room flagged ``exclusive`` is only ever
offered to its own department. Everything else is ordering. Rooms are split
into three tiers (own priority rooms, own rooms, everyone else's shareable
rooms), each tier is shuffled to spread load, and declarative preference
rules then float matching rooms (e.g. computer labs for BSIT laboratory
classes) to the front of their tier.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from timetabler.domain.models import LABORATORY, LECTURE, Department, Room
from timetabler.utils.logger import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class RoomPreferenceRule:
    """Prefer rooms carrying a tag or a marker substring in their id/name.

    ``department`` of ``None`` applies the rule to every department. Marker
    matching is case-sensitive so ``CL`` does not match ``Classroom``.
    """

    class_type: str
    markers: tuple[str, ...] = ()
    tags: frozenset[str] = field(default_factory=frozenset)
    department: Optional[str] = None

    def applies_to(
        self,
        department_code: str,
        class_type: str,
        matcher: Optional["DepartmentMatcher"] = None,
    ) -> bool:
        if class_type != self.class_type:
            return False
        if self.department is None:
            return True
        if matcher is not None:
            return matcher.same(self.department, department_code)
        return self.department.casefold() == department_code.strip().casefold()

    def matches(self, room: Room) -> bool:
        if self.tags and {tag.casefold() for tag in room.tags} & self.tags:
            return True
        return any(
            marker in room.room_id or marker in room.name
            for marker in self.markers
        )


DEFAULT_PREFERENCE_RULES: tuple[RoomPreferenceRule, ...] = (
    RoomPreferenceRule(
        class_type=LABORATORY,
        markers=("CL", "Lab", "LAB", "Computer"),
        tags=frozenset({"lab", "computer-lab"}),
        department="BSIT",
    ),
    RoomPreferenceRule(
        class_type=LABORATORY,
        markers=("KITCHEN", "Kitchen", "DINING", "Dining"),
        tags=frozenset({"kitchen", "dining"}),
        department="BSHM",
    ),
    RoomPreferenceRule(
        class_type=LECTURE,
        markers=("DINING", "Dining"),
        tags=frozenset({"dining"}),
        department="BSHM",
    ),
)


class DepartmentMatcher:
    """Resolves whether a room affiliation names the same department as a request.

    Affiliations and request departments may be stored as id, code or name;
    all three resolve through the department catalog, case-insensitively.
    """

    def __init__(self, departments: Iterable[Department] = ()) -> None:
        self._canonical: dict[str, str] = {}
        for department in departments:
            for alias in (department.department_id, department.code, department.name):
                if alias and alias.strip():
                    self._canonical[alias.strip().casefold()] = department.department_id

    def canonical(self, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        key = value.strip().casefold()
        return self._canonical.get(key, key)

    def same(self, left: Optional[str], right: Optional[str]) -> bool:
        left_key = self.canonical(left)
        return left_key is not None and left_key == self.canonical(right)


class RoomCompatibilityResolver:
    def __init__(
        self,
        rooms: Sequence[Room],
        *,
        departments: Iterable[Department] = (),
        rules: Sequence[RoomPreferenceRule] = DEFAULT_PREFERENCE_RULES,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._rooms = tuple(rooms)
        self._matcher = DepartmentMatcher(departments)
        self._rules = tuple(rules)
        self._rng = rng or random.Random()

    def is_usable_by(self, room: Room, department_code: str) -> bool:
        if not room.exclusive:
            return True
        return self._matcher.same(room.department, department_code)

    def candidate_rooms(self, department_code: str, class_type: str) -> list[Room]:
        priority_tier: list[Room] = []
        own_tier: list[Room] = []
        shared_tier: list[Room] = []
        for room in self._rooms:
            if not self.is_usable_by(room, department_code):
                continue
            if self._matcher.same(room.department, department_code):
                if room.priority:
                    priority_tier.append(room)
                else:
                    own_tier.append(room)
            else:
                shared_tier.append(room)

        if not priority_tier and not own_tier:
            logger.debug(
                "No affiliated rooms; falling back to shared pool | department=%s | shared=%s",
                department_code,
                len(shared_tier),
            )

        rules = [
            rule
            for rule in self._rules
            if rule.applies_to(department_code, class_type, self._matcher)
        ]
        ordered: list[Room] = []
        for tier in (priority_tier, own_tier, shared_tier):
            self._rng.shuffle(tier)
            ordered.extend(self._apply_rules(tier, rules))
        return ordered

    @staticmethod
    def _apply_rules(tier: list[Room], rules: Sequence[RoomPreferenceRule]) -> list[Room]:
        if not rules:
            return tier
        preferred = [room for room in tier if any(rule.matches(room) for rule in rules)]
        if not preferred:
            return tier
        rest = [room for room in tier if room not in preferred]
        return preferred + rest
