"""Reminder copy: titles and flavour text picked from static tables."""

from __future__ import annotations

import random
from typing import Optional, Protocol

_HABIT_MESSAGES = (
    "Your habit '{habit}' is feeling neglected. It's starting to wonder if you ever cared.",
    "Remember {habit}? No? It remembers you. It's been waiting all day.",
    "{habit} says hi. Also, it's been waiting. Not that it's counting or anything.",
    "Oh, you're busy? That's cool. {habit} will just sit here. Alone. In the dark.",
    "Your future self called. They said to do {habit}. Also, they sound disappointed.",
)

_SUBJECTS = (
    "{habit} is waiting...",
    "{habit} noticed you haven't shown up",
    "{habit} would like a word",
    "Tick tock... {habit} is still waiting",
)

_STREAK_MESSAGES = (
    "Your {streak} day streak is about to die. But hey, no pressure.",
    "Hi, it's your {streak} day streak. I'm scared. Please don't let me die today.",
    "{streak} days of dedication. All about to vanish. Unless you act now.",
    "Your {streak} day streak and I are worried about you. Please respond.",
)

_MULTI_HABIT_MESSAGES = (
    "You have {count} habits feeling neglected today. Your {streak} day streak is getting nervous.",
    "{count} incomplete habits. One dying streak. Zero excuses.",
)

_URGENT_MESSAGES = (
    "FINAL NOTICE: Your {streak} day streak expires in a few hours. This is not a drill.",
    "Your streak's obituary is being drafted as we speak. Only you can stop this.",
)


class MessageProvider(Protocol):
    """Supplies the human-facing text for notifications."""

    def pick_message(self, habit_name: str, streak: int) -> str:
        ...

    def pick_subject(self, habit_name: str) -> str:
        ...

    def pick_streak_message(self, streak: int, incomplete_count: int, urgent: bool) -> str:
        ...


class RandomMessageProvider:
    """Random pick from the static tables; pass ``seed`` for reproducible output."""

    def __init__(self, seed: Optional[int] = None):
        self._random = random.Random(seed)

    def pick_message(self, habit_name: str, streak: int = 0) -> str:
        template = self._random.choice(_HABIT_MESSAGES)
        return template.format(habit=habit_name, streak=streak)

    def pick_subject(self, habit_name: str) -> str:
        return self._random.choice(_SUBJECTS).format(habit=habit_name)

    def pick_streak_message(self, streak: int, incomplete_count: int, urgent: bool) -> str:
        if urgent and self._random.random() > 0.5:
            table = _URGENT_MESSAGES
        elif incomplete_count > 1 and self._random.random() > 0.6:
            table = _MULTI_HABIT_MESSAGES
        else:
            table = _STREAK_MESSAGES
        return self._random.choice(table).format(streak=streak, count=incomplete_count)


def reminder_title(icon: str, habit_name: str) -> str:
    return f"{icon} {habit_name}".strip()


def streak_title(icon: str, streak: int) -> str:
    return f"{icon} Your {streak} day streak is in danger!".strip()


__all__ = ["MessageProvider", "RandomMessageProvider", "reminder_title", "streak_title"]
