from __future__ import annotations

import asyncio
import getpass
import logging
import sys
import threading
from typing import Any, Callable, List, Optional, Sequence, TextIO

from .prompts import InputBox, QuickInputButton, QuickInputButtons, QuickPick


LOGGER = logging.getLogger(__name__)

Reader = Callable[[str], Optional[str]]

BACK_COMMAND = "<"
BUTTON_PREFIX = ":"


def _read_line(prompt: str) -> Optional[str]:
    try:
        return input(prompt)
    except EOFError:
        return None


def _read_secret(prompt: str) -> Optional[str]:
    try:
        return getpass.getpass(prompt)
    except EOFError:
        return None


async def _settled(tasks: Sequence["asyncio.Task[Any]"]) -> None:
    if tasks:
        await asyncio.gather(*tasks)


class ConsoleShell:
    """Line-oriented prompts on a terminal.

    ``reader`` is called with the prompt text and returns the entered line, or
    ``None`` at end of input. It runs on a daemon thread so a blocking
    ``input()`` neither stalls the event loop nor holds up interpreter exit
    once the flow is interrupted.
    """

    def __init__(self, reader: Optional[Reader] = None, stream: Optional[TextIO] = None) -> None:
        self._reader = reader
        self._stream = stream

    def create_quick_pick(self) -> "ConsoleQuickPick":
        return ConsoleQuickPick(self)

    def create_input_box(self) -> "ConsoleInputBox":
        return ConsoleInputBox(self)

    async def read(self, prompt: str, secret: bool = False) -> Optional[str]:
        reader = self._reader
        if reader is None:
            reader = _read_secret if secret else _read_line
        loop = asyncio.get_running_loop()
        future: "asyncio.Future[Optional[str]]" = loop.create_future()

        def deliver(line: Optional[str], error: Optional[BaseException]) -> None:
            if future.done():
                return
            if error is not None:
                future.set_exception(error)
            else:
                future.set_result(line)

        def work() -> None:
            line: Optional[str] = None
            error: Optional[BaseException] = None
            try:
                line = reader(prompt)
            except Exception as exc:
                error = exc
            try:
                loop.call_soon_threadsafe(deliver, line, error)
            except RuntimeError:
                LOGGER.debug("Event loop closed; dropping console input")

        threading.Thread(target=work, name="envpick-console-reader", daemon=True).start()
        return await future

    def write(self, text: str = "") -> None:
        stream = self._stream or sys.stdout
        print(text, file=stream)
        stream.flush()


class _ConsoleInteraction:
    shell: ConsoleShell
    buttons: List[QuickInputButton]
    visible: bool
    disposed: bool

    def _render(self) -> None:
        self._task = asyncio.ensure_future(self._run_interaction())

    async def _run_interaction(self) -> None:
        try:
            await self._interact()
        except Exception:
            LOGGER.exception("Console prompt failed")
            self.hide()

    async def _interact(self) -> None:
        raise NotImplementedError

    @property
    def _active(self) -> bool:
        return self.visible and not self.disposed

    def _extra_buttons(self) -> List[QuickInputButton]:
        return [button for button in self.buttons if button is not QuickInputButtons.BACK]

    def _button_for(self, text: str) -> Optional[QuickInputButton]:
        if text == BACK_COMMAND:
            return QuickInputButtons.BACK if QuickInputButtons.BACK in self.buttons else None
        if text.startswith(BUTTON_PREFIX) and text[1:].isdigit():
            extra = self._extra_buttons()
            index = int(text[1:])
            if 1 <= index <= len(extra):
                return extra[index - 1]
        return None

    def _write_buttons(self) -> None:
        if QuickInputButtons.BACK in self.buttons:
            self.shell.write(f"  {BACK_COMMAND}  {QuickInputButtons.BACK.tooltip}")
        for index, button in enumerate(self._extra_buttons(), start=1):
            self.shell.write(f"  {BUTTON_PREFIX}{index} {button.tooltip}")


class ConsoleQuickPick(_ConsoleInteraction, QuickPick[Any]):
    def __init__(self, shell: ConsoleShell) -> None:
        super().__init__()
        self.shell = shell

    async def _interact(self) -> None:
        if self.heading:
            self.shell.write(self.heading)
        shown = list(self.items)
        self._write_items(shown)
        self._write_buttons()
        while self._active:
            line = await self.shell.read(f"{self.placeholder or 'Select'}: ")
            if not self._active:
                return
            text = (line or "").strip()
            if not text:
                self.hide()
                return
            button = self._button_for(text)
            if button is not None:
                await _settled(self.trigger_button(button))
                return
            if text.isdigit():
                index = int(text)
                if 1 <= index <= len(shown):
                    await _settled(self.select(shown[index - 1]))
                    return
                self.shell.write(f"No item numbered {index}.")
                continue
            await _settled(self.set_value(text))
            if self.on_did_accept.listener_count:
                await _settled(self.accept())
                return
            matches = self.filter_items(text)
            if not matches:
                self.shell.write(f"No items match '{text}'.")
                continue
            shown = matches
            self._write_items(shown)

    def _write_items(self, items: Sequence[Any]) -> None:
        active = self.active_items[0] if self.active_items else None
        for index, item in enumerate(items, start=1):
            marker = "*" if item is active else " "
            line = f"{marker}{index:>2}. {getattr(item, 'label', item)}"
            description = getattr(item, "description", None)
            if description:
                line = f"{line}  ({description})"
            self.shell.write(line)
            detail = getattr(item, "detail", None)
            if detail:
                self.shell.write(f"      {detail}")


class ConsoleInputBox(_ConsoleInteraction, InputBox):
    def __init__(self, shell: ConsoleShell) -> None:
        super().__init__()
        self.shell = shell

    async def _interact(self) -> None:
        if self.heading:
            self.shell.write(self.heading)
        if self.prompt:
            self.shell.write(self.prompt)
        self._write_buttons()
        while self._active:
            if self.validation_message:
                self.shell.write(f"! {self.validation_message}")
            prompt = f"[{self.value}]> " if self.value and not self.password else "> "
            line = await self.shell.read(prompt, secret=self.password)
            if not self._active:
                return
            if line is None:
                self.hide()
                return
            button = self._button_for(line.strip())
            if button is not None:
                await _settled(self.trigger_button(button))
                return
            # An empty line submits the prefilled value.
            if line:
                await _settled(self.set_value(line))
            await _settled(self.accept())
            if not self.enabled:
                return
