from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from rad_assist.actions import MacroInsertion

LOGGER = logging.getLogger(__name__)

BLANK_LINE_COUNT = 10


def _terms(raw: Any) -> tuple[str, ...]:
    if not raw:
        return ()
    if isinstance(raw, str):
        raw = raw.split(",")
    return tuple(term.strip() for term in raw if str(term).strip())


def matches_study(required: Iterable[str], excluded: Iterable[str], description: str | None) -> bool:
    required = tuple(required)
    excluded = tuple(excluded)
    if not required and not excluded:
        return True
    if not description:
        return False

    text = description.lower()
    if any(term.lower() not in text for term in required):
        return False
    return not any(term.lower() in text for term in excluded)


@dataclass(frozen=True)
class Macro:
    name: str
    text: str = ""
    enabled: bool = True
    required_terms: tuple[str, ...] = ()
    excluded_terms: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "Macro":
        return cls(
            name=str(raw["name"]),
            text=str(raw.get("text", "")),
            enabled=bool(raw.get("enabled", True)),
            required_terms=_terms(raw.get("required_terms")),
            excluded_terms=_terms(raw.get("excluded_terms")),
        )

    def matches(self, description: str | None) -> bool:
        return self.enabled and matches_study(self.required_terms, self.excluded_terms, description)


@dataclass(frozen=True)
class PickList:
    name: str
    items: tuple[str, ...] = field(default_factory=tuple)
    enabled: bool = True
    required_terms: tuple[str, ...] = ()
    excluded_terms: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "PickList":
        return cls(
            name=str(raw["name"]),
            items=tuple(str(item) for item in raw.get("items", ())),
            enabled=bool(raw.get("enabled", True)),
            required_terms=_terms(raw.get("required_terms")),
            excluded_terms=_terms(raw.get("excluded_terms")),
        )

    def matches(self, description: str | None) -> bool:
        return self.enabled and matches_study(self.required_terms, self.excluded_terms, description)


def load_macros(entries: Iterable[dict[str, Any]]) -> list[Macro]:
    return [Macro.from_dict(entry) for entry in entries]


def load_pick_lists(entries: Iterable[dict[str, Any]]) -> list[PickList]:
    return [PickList.from_dict(entry) for entry in entries]


def build_macro_text(
    macros: Iterable[Macro],
    description: str | None,
    blank_lines_before: bool = False,
) -> MacroInsertion | None:
    matched = [macro for macro in macros if macro.matches(description) and macro.text.strip()]
    if not matched:
        return None

    LOGGER.info("Macros matched for %r: %s", description, ", ".join(m.name for m in matched))
    body = "\n".join(macro.text for macro in matched)
    if blank_lines_before:
        # A single space per line: the reporting app collapses empty lines.
        body = "\n".join([" "] * BLANK_LINE_COUNT) + "\n" + body
    return MacroInsertion(text=body, count=len(matched))


def matching_pick_lists(pick_lists: Iterable[PickList], description: str | None) -> list[PickList]:
    return [pick_list for pick_list in pick_lists if pick_list.matches(description) and pick_list.items]


__all__ = [
    "BLANK_LINE_COUNT",
    "Macro",
    "PickList",
    "build_macro_text",
    "load_macros",
    "load_pick_lists",
    "matches_study",
    "matching_pick_lists",
]
