"""Bracketed key notation: parse `<Esc>:wq<Enter>` and replay it as key presses.

A response is split into `Literal` runs and `Named` tags. Concatenating
`tag.render()` over a parse gives back the input unchanged, so one parse
drives both live replay and the legend shown to the user.

Recognized names (case-insensitive): Esc, Enter/CR, Tab, BS, Del, Up, Down,
Left, Right, Space, F1-F12, plus C-x (Control) and M-x/A-x (Alt) for a single
character x. Anything else in brackets is an unresolved `Named` tag that is
sent back out as its literal text.
"""

import logging
import re
from dataclasses import dataclass
from typing import Iterator, Protocol

from cmdk.errors import TargetUnreachable

logger = logging.getLogger(__name__)

CONTROL = "C"
ALT = "M"


@dataclass(frozen=True)
class Key:
    """A key press: a named key, or a modifier plus one character."""

    name: str
    modifier: str | None = None

    @property
    def identifier(self) -> str:
        return f"{self.modifier}-{self.name}" if self.modifier else self.name


ESCAPE = Key("Escape")
ENTER = Key("Enter")
TAB = Key("Tab")
BACKSPACE = Key("Backspace")
DELETE = Key("Delete")
UP = Key("Up")
DOWN = Key("Down")
LEFT = Key("Left")
RIGHT = Key("Right")
SPACE = Key("Space")

NAMED_KEYS: dict[str, Key] = {
    "esc": ESCAPE,
    "enter": ENTER,
    "cr": ENTER,
    "tab": TAB,
    "bs": BACKSPACE,
    "del": DELETE,
    "up": UP,
    "down": DOWN,
    "left": LEFT,
    "right": RIGHT,
    "space": SPACE,
    **{f"f{n}": Key(f"F{n}") for n in range(1, 13)},
}

MODIFIERS = {"c": CONTROL, "m": ALT, "a": ALT}

_MODIFIED = re.compile(r"^([CcMmAa])-(.)$", re.DOTALL)


@dataclass(frozen=True)
class Literal:
    text: str

    def render(self) -> str:
        return self.text


@dataclass(frozen=True, eq=False)
class Named:
    """A bracketed tag. `key` is None when the name is not recognized."""

    key: Key | None
    raw: str

    @property
    def recognized(self) -> bool:
        return self.key is not None

    def render(self) -> str:
        return self.raw

    # Spelling variants of one key (<A-f>, <M-f>) compare equal
    def _identity(self) -> tuple:
        return (self.key,) if self.key is not None else (None, self.raw)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Named):
            return NotImplemented
        return self._identity() == other._identity()

    def __hash__(self) -> int:
        return hash(self._identity())


Tag = Literal | Named


def resolve(name: str) -> Key | None:
    """Look up the text between the brackets in the vocabulary."""
    key = NAMED_KEYS.get(name.lower())
    if key is not None:
        return key
    match = _MODIFIED.match(name)
    if match:
        return Key(match.group(2), MODIFIERS[match.group(1).lower()])
    return None


def _scan(text: str) -> Iterator[Tag]:
    start = 0
    pos = 0
    while True:
        opener = text.find("<", pos)
        if opener == -1:
            break
        closer = text.find(">", opener + 1)
        if closer == -1:
            break
        nested = text.find("<", opener + 1, closer)
        if nested != -1:
            # the first "<" is unmatched; retry from the inner one
            pos = nested
            continue
        if closer == opener + 1:
            pos = closer + 1
            continue
        if start < opener:
            yield Literal(text[start:opener])
        raw = text[opener : closer + 1]
        yield Named(resolve(raw[1:-1]), raw)
        start = pos = closer + 1
    if start < len(text):
        yield Literal(text[start:])


class KeySequence:
    """Restartable view over the tags of one string."""

    def __init__(self, text: str):
        self.text = text

    def __iter__(self) -> Iterator[Tag]:
        return _scan(self.text)

    def __repr__(self) -> str:
        return f"KeySequence({self.text!r})"

    def render(self) -> str:
        return "".join(tag.render() for tag in self)

    def has_special_keys(self) -> bool:
        return any(isinstance(tag, Named) and tag.recognized for tag in self)


def parse(text: str) -> KeySequence:
    return KeySequence(text)


def contains_special_keys(text: str) -> bool:
    """True iff at least one bracket tag names a recognized key."""
    return parse(text).has_special_keys()


def describe(tags) -> str:
    """Legend for display, e.g. `[Escape] :wq [Enter]`."""
    parts = []
    for tag in tags:
        if isinstance(tag, Named) and tag.key is not None:
            parts.append(f"[{tag.key.identifier}]")
        else:
            parts.append(tag.render())
    return " ".join(part.strip() or repr(part) for part in parts)


class KeyTarget(Protocol):
    """A surface that accepts typed text and key presses."""

    def send_literal(self, text: str) -> bool: ...

    def send_named_key(self, key: Key) -> bool: ...


def replay(tags, target: KeyTarget) -> int:
    """Send tags to the target in order and return how many were sent.

    Sends that already happened are not undone when a later one fails.
    """
    sent = 0
    for tag in tags:
        if isinstance(tag, Named) and tag.key is not None:
            ok = target.send_named_key(tag.key)
            what = tag.key.identifier
        else:
            ok = target.send_literal(tag.render())
            what = repr(tag.render())
        if not ok:
            raise TargetUnreachable(f"Failed to send {what} after {sent} key event(s)")
        logger.debug("Sent %s", what)
        sent += 1
    return sent
