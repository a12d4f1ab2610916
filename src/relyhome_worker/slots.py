"""Slot discovery, scoring and label parsing for job acceptance pages."""

from __future__ import annotations

import re
from typing import Iterable, List, Optional, Sequence

import structlog
from bs4 import BeautifulSoup, Tag

from .errors import NoSlotsFound
from .models import ParsedSlotLabel, Slot
from .selectors import SLOT_INPUTS

LOGGER = structlog.get_logger(__name__)

DAY_NAMES = {
    "sun": "sunday",
    "mon": "monday",
    "tue": "tuesday",
    "wed": "wednesday",
    "thu": "thursday",
    "fri": "friday",
    "sat": "saturday",
}

DAY_MATCH_BONUS = 100
TIME_MATCH_BONUS = 50
TIME_MATCH_STEP = 5

TIME_TOKEN_RE = re.compile(r"\d{1,2}:?(?:\d{2})?\s*(?:am|pm)?", re.IGNORECASE)
DATE_RE = re.compile(r"(\d{1,2}/\d{1,2}/\d{2,4}|\d{4}-\d{2}-\d{2})")
WEEKDAY_RE = re.compile(
    r"\b(monday|tuesday|wednesday|thursday|friday|saturday|sunday"
    r"|mon|tues|tue|wed|thurs|thur|thu|fri|sat|sun)\b",
    re.IGNORECASE,
)
TIME_RANGE_RE = re.compile(
    r"(?<![\d:])(?<!\d[/-])(\d{1,2}(?::\d{2})?\s*(?:am|pm)?\s*-\s*\d{1,2}(?::\d{2})?\s*(?:am|pm)?)",
    re.IGNORECASE,
)

LABEL_CONTAINERS = ["tr", "div", "li"]

# What a browser reports for a radio without a value attribute.
DEFAULT_RADIO_VALUE = "on"


def discover_slots(html: str) -> List[Slot]:
    """Return the slot radios on the page in document order."""
    soup = BeautifulSoup(html, "html.parser")
    slots: List[Slot] = []
    for radio in soup.select(SLOT_INPUTS):
        value = radio.get("value", DEFAULT_RADIO_VALUE)
        element_id = radio.get("id") or None
        slots.append(
            Slot(
                value=value,
                label=_label_for(soup, radio, element_id) or value,
                element_id=element_id,
                group_name=radio.get("name") or None,
            )
        )
    LOGGER.info("slots.discovered", count=len(slots))
    return slots


def _label_for(soup: BeautifulSoup, radio: Tag, element_id: Optional[str]) -> str:
    if element_id:
        label = soup.find("label", attrs={"for": element_id})
        if label:
            text = label.get_text().strip()
            if text:
                return text
    container = radio.find_parent(LABEL_CONTAINERS)
    if container:
        return container.get_text().strip()
    return ""


def expand_day(token: str) -> str:
    """``"mon"`` -> ``"monday"``; anything else is returned unchanged."""
    return DAY_NAMES.get(token, token)


def time_tokens(text: str) -> List[str]:
    return [match.group(0) for match in TIME_TOKEN_RE.finditer(text) if match.group(0)]


def times_overlap(label: str, preferred: str) -> bool:
    """True when any ``H:MM am/pm`` fragment appears in both strings verbatim."""
    label_times = time_tokens(label)
    preferred_times = time_tokens(preferred)
    if not label_times or not preferred_times:
        return False
    return any(fragment in preferred_times for fragment in label_times)


def score_slot(slot: Slot, preferred_days: Sequence[str], preferred_slots: Sequence[str]) -> int:
    label = (slot.label or "").lower()
    score = 0

    for day in (str(day).lower() for day in preferred_days):
        if day in label or expand_day(day) in label:
            score += DAY_MATCH_BONUS
            break

    for index, wanted in enumerate(str(item).lower() for item in preferred_slots):
        if wanted in label or times_overlap(label, wanted):
            score += TIME_MATCH_BONUS - index * TIME_MATCH_STEP
            break

    return score


def select_best_slot(
    slots: Sequence[Slot],
    preferred_days: Iterable[str] = (),
    preferred_slots: Iterable[str] = (),
) -> Slot:
    """
    Pick the slot that best matches the caller's preferences.

    Ties keep discovery order, so with no matches at all the first slot wins.
    """
    if not slots:
        raise NoSlotsFound("No time slots found on page")
    days = list(preferred_days or [])
    times = list(preferred_slots or [])
    ranked = sorted(
        enumerate(slots),
        key=lambda pair: (-score_slot(pair[1], days, times), pair[0]),
    )
    best = ranked[0][1]
    LOGGER.info("slots.selected", label=best.label, score=score_slot(best, days, times))
    return best


def parse_slot_label(label: str) -> ParsedSlotLabel:
    label = label or ""
    date = DATE_RE.search(label)
    day = WEEKDAY_RE.search(label)
    time_range = TIME_RANGE_RE.search(label)
    return ParsedSlotLabel(
        date=date.group(1) if date else None,
        day_of_week=day.group(1) if day else None,
        time_range=time_range.group(1).strip() if time_range else None,
    )
