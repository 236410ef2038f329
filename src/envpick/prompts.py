"""Prompt widgets used by multi-step flows.

A :class:`PromptShell` creates choice-list (:class:`QuickPick`) and text-input
(:class:`InputBox`) widgets. Widgets are plain models: backends subclass them
and override :meth:`QuickInput._render` to put them on screen, then report user
interaction by firing the widget's events.
"""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass
from typing import Any, Callable, Generic, List, Optional, Protocol, Sequence, TypeVar

T = TypeVar("T")


class Disposable:
    def __init__(self, callback: Callable[[], Any]) -> None:
        self._callback: Optional[Callable[[], Any]] = callback

    def dispose(self) -> None:
        callback, self._callback = self._callback, None
        if callback is not None:
            callback()


class EventEmitter:
    """Callback registry.

    Calling the emitter registers a listener and returns a :class:`Disposable`
    that unregisters it. Listeners may be coroutine functions; their coroutines
    are scheduled as tasks and returned from :meth:`fire`.
    """

    def __init__(self) -> None:
        self._listeners: List[Callable[..., Any]] = []
        self._pending: set = set()

    def __call__(self, listener: Callable[..., Any]) -> Disposable:
        self._listeners.append(listener)
        return Disposable(lambda: self._remove(listener))

    def _remove(self, listener: Callable[..., Any]) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def fire(self, *args: Any) -> List["asyncio.Task[Any]"]:
        tasks: List["asyncio.Task[Any]"] = []
        for listener in list(self._listeners):
            result = listener(*args)
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._pending.add(task)
                task.add_done_callback(self._pending.discard)
                tasks.append(task)
        return tasks

    def dispose(self) -> None:
        self._listeners.clear()


@dataclass(frozen=True, eq=False)
class QuickInputButton:
    tooltip: str
    icon: Optional[str] = None


class QuickInputButtons:
    BACK = QuickInputButton("Back", icon="arrow-left")


@dataclass
class QuickPickItem:
    label: str
    description: Optional[str] = None
    detail: Optional[str] = None


class QuickInput:
    def __init__(self) -> None:
        self.title: Optional[str] = None
        self.step: Optional[int] = None
        self.total_steps: Optional[int] = None
        self.enabled = True
        self.busy = False
        self.ignore_focus_out = False
        self.buttons: List[QuickInputButton] = []
        self.visible = False
        self.disposed = False
        self.on_did_trigger_button = EventEmitter()
        self.on_did_hide = EventEmitter()

    def _emitters(self) -> List[EventEmitter]:
        return [self.on_did_trigger_button, self.on_did_hide]

    def show(self) -> None:
        if self.disposed:
            return
        self.visible = True
        self._render()

    def hide(self) -> None:
        if not self.visible:
            return
        self.visible = False
        self.on_did_hide.fire()

    def dispose(self) -> None:
        if self.disposed:
            return
        self.hide()
        self.disposed = True
        for emitter in self._emitters():
            emitter.dispose()

    def trigger_button(self, button: QuickInputButton) -> List["asyncio.Task[Any]"]:
        return self.on_did_trigger_button.fire(button)

    def _render(self) -> None:
        pass

    @property
    def heading(self) -> str:
        parts = []
        if self.step is not None:
            parts.append(f"[{self.step}/{self.total_steps}]" if self.total_steps else f"[{self.step}]")
        if self.title:
            parts.append(self.title)
        return " ".join(parts)


class QuickPick(QuickInput, Generic[T]):
    def __init__(self) -> None:
        super().__init__()
        self.items: Sequence[T] = []
        self.active_items: Sequence[T] = []
        self.selected_items: Sequence[T] = []
        self.placeholder: Optional[str] = None
        self.value = ""
        self.match_on_description = False
        self.match_on_detail = False
        self.on_did_change_selection = EventEmitter()
        self.on_did_accept = EventEmitter()
        self.on_did_change_value = EventEmitter()

    def _emitters(self) -> List[EventEmitter]:
        return super()._emitters() + [
            self.on_did_change_selection,
            self.on_did_accept,
            self.on_did_change_value,
        ]

    def select(self, *items: T) -> List["asyncio.Task[Any]"]:
        self.selected_items = list(items)
        return self.on_did_change_selection.fire(self.selected_items)

    def set_value(self, value: str) -> List["asyncio.Task[Any]"]:
        self.value = value
        return self.on_did_change_value.fire(value)

    def accept(self) -> List["asyncio.Task[Any]"]:
        return self.on_did_accept.fire()

    def filter_items(self, text: str) -> List[T]:
        needle = text.lower()
        matches = []
        for item in self.items:
            fields = [getattr(item, "label", str(item))]
            if self.match_on_description:
                fields.append(getattr(item, "description", None) or "")
            if self.match_on_detail:
                fields.append(getattr(item, "detail", None) or "")
            if any(needle in field.lower() for field in fields):
                matches.append(item)
        return matches


class InputBox(QuickInput):
    def __init__(self) -> None:
        super().__init__()
        self.value = ""
        self.prompt: Optional[str] = None
        self.password = False
        self.validation_message: Optional[str] = None
        self.on_did_change_value = EventEmitter()
        self.on_did_accept = EventEmitter()

    def _emitters(self) -> List[EventEmitter]:
        return super()._emitters() + [self.on_did_change_value, self.on_did_accept]

    def set_value(self, value: str) -> List["asyncio.Task[Any]"]:
        self.value = value
        return self.on_did_change_value.fire(value)

    def accept(self) -> List["asyncio.Task[Any]"]:
        return self.on_did_accept.fire()


class PromptShell(Protocol):
    def create_quick_pick(self) -> QuickPick[Any]:
        ...

    def create_input_box(self) -> InputBox:
        ...
