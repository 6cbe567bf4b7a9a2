"""Keyboard shortcut matching for the task editor.

Maps key combinations (Ctrl+S, Escape, ...) to editor actions. Key events
that originate inside a text input are never treated as shortcuts.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional

from .sync_engine.autosave import AutoSaveController

_TEXT_INPUT_TAGS = {"INPUT", "TEXTAREA"}


@dataclass(frozen=True)
class KeyEvent:
    key: str
    ctrl: bool = False
    shift: bool = False
    alt: bool = False
    meta: bool = False
    target_tag: str = ""
    content_editable: bool = False

    @property
    def from_text_input(self) -> bool:
        return self.target_tag.upper() in _TEXT_INPUT_TAGS or self.content_editable


@dataclass
class Shortcut:
    key: str
    action: Callable[[], Any]
    ctrl: bool = False
    shift: bool = False
    alt: bool = False
    meta: bool = False
    description: str = ""

    def matches(self, event: KeyEvent) -> bool:
        return (
            event.key == self.key
            and event.ctrl == self.ctrl
            and event.shift == self.shift
            and event.alt == self.alt
            and event.meta == self.meta
        )

    @property
    def keys(self) -> str:
        parts = [name for name, on in (("Ctrl", self.ctrl), ("Shift", self.shift), ("Alt", self.alt), ("Meta", self.meta)) if on]
        parts.append(self.key.upper() if len(self.key) == 1 else self.key)
        return "+".join(parts)


@dataclass
class ShortcutMatch:
    matched: bool
    shortcut: Optional[Shortcut] = None
    result: Any = None


def dispatch(shortcuts: Iterable[Shortcut], event: KeyEvent) -> ShortcutMatch:
    """Run the first shortcut matching *event*.

    The action's return value is passed through; for async actions that is a
    coroutine the caller must await.
    """
    if event.from_text_input:
        return ShortcutMatch(matched=False)
    for shortcut in shortcuts:
        if shortcut.matches(event):
            return ShortcutMatch(matched=True, shortcut=shortcut, result=shortcut.action())
    return ShortcutMatch(matched=False)


def help_lines(shortcuts: Iterable[Shortcut]) -> list[str]:
    return [f"{s.keys}: {s.description}" for s in shortcuts]


def editor_shortcuts(
    session: AutoSaveController,
    *,
    on_save: Optional[Callable[[], Any]] = None,
    on_cancel: Optional[Callable[[], Any]] = None,
    on_history: Optional[Callable[[], Any]] = None,
    on_help: Optional[Callable[[], Any]] = None,
) -> list[Shortcut]:
    """Build the editor's shortcut table around *session*."""
    shortcuts = [
        Shortcut(key="s", ctrl=True, action=on_save or session.save, description="Save task"),
        Shortcut(key="Escape", action=on_cancel or session.cancel, description="Cancel editing"),
    ]
    if on_history is not None:
        shortcuts.append(Shortcut(key="h", ctrl=True, action=on_history, description="Show history"))
    if on_help is not None:
        shortcuts.append(Shortcut(key="?", shift=True, action=on_help, description="Toggle shortcut help"))
    return shortcuts
