"""Resumable multi-step input flows.

A flow is a chain of steps. Each step is an async callable taking the
:class:`MultiStepInput` driving it and the flow's shared state, and returning
the next step (or ``None`` to finish). Steps move backwards or stop the flow by
raising :class:`FlowBack`, :class:`FlowResume` or :class:`FlowCancel`; any
other exception is a real failure and ends the run.

Example::

    async def pick_name(input, state):
        state.name = await input.show_input_box(
            InputBoxParameters(title="New env", value="", prompt="Name", validate=check)
        )
        return pick_python if state.name else None

    await MultiStepInput(shell).run(pick_name, state)
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import (
    Any,
    Awaitable,
    Callable,
    Generic,
    List,
    Optional,
    Sequence,
    Tuple,
    TypeVar,
    Union,
)

from .prompts import (
    InputBox,
    PromptShell,
    QuickInput,
    QuickInputButton,
    QuickInputButtons,
    QuickPick,
)


LOGGER = logging.getLogger(__name__)

S = TypeVar("S")
T = TypeVar("T")


class InputFlowAction(Exception):
    """Base class for the navigation signals a step may raise."""


class FlowBack(InputFlowAction):
    """Leave the current step and re-enter the one before it."""


class FlowCancel(InputFlowAction):
    """Stop the flow without running any further steps."""


class FlowResume(InputFlowAction):
    """Re-enter the current step, e.g. to redisplay it with refreshed data."""


InputStep = Callable[["MultiStepInput[S]", S], Awaitable[Optional["InputStep[S]"]]]


class OutcomeKind(enum.Enum):
    FORWARD = "forward"
    BACK = "back"
    CANCEL = "cancel"
    RESUME = "resume"
    FAILURE = "failure"


_SIGNAL_KINDS: Tuple[Tuple[type, OutcomeKind], ...] = (
    (FlowBack, OutcomeKind.BACK),
    (FlowCancel, OutcomeKind.CANCEL),
    (FlowResume, OutcomeKind.RESUME),
)


@dataclass(frozen=True)
class StepOutcome(Generic[S]):
    kind: OutcomeKind
    next_step: Optional[InputStep[S]] = None
    error: Optional[BaseException] = None


@dataclass
class QuickPickParameters(Generic[T]):
    items: Sequence[T]
    placeholder: str
    title: Optional[str] = None
    step: Optional[int] = None
    total_steps: Optional[int] = None
    can_go_back: Optional[bool] = None
    active_item: Optional[T] = None
    buttons: Sequence[QuickInputButton] = ()
    match_on_description: bool = False
    match_on_detail: bool = False
    accept_filter_box_text_as_selection: bool = False


@dataclass
class InputBoxParameters:
    title: str
    value: str
    prompt: str
    validate: Callable[[str], Awaitable[Optional[str]]]
    password: bool = False
    step: Optional[int] = None
    total_steps: Optional[int] = None
    buttons: Sequence[QuickInputButton] = ()


def _settle(result: "asyncio.Future[Any]", value: Any) -> None:
    if not result.done():
        result.set_result(value)


def _fail(result: "asyncio.Future[Any]", error: BaseException) -> None:
    if not result.done():
        result.set_exception(error)


def _accepted_value(picker: QuickPick[T]) -> Union[T, str]:
    if picker.selected_items:
        return picker.selected_items[0]
    for item in picker.items:
        if getattr(item, "label", None) == picker.value:
            return item
    return picker.value


class MultiStepInput(Generic[S]):
    def __init__(self, shell: PromptShell) -> None:
        self._shell = shell
        self._current: Optional[QuickInput] = None
        self._steps: List[InputStep[S]] = []
        self._running = False

    @property
    def steps(self) -> Tuple[InputStep[S], ...]:
        return tuple(self._steps)

    @property
    def depth(self) -> int:
        return len(self._steps)

    @property
    def current(self) -> Optional[QuickInput]:
        return self._current

    async def run(self, start: InputStep[S], state: S) -> None:
        if self._running:
            raise RuntimeError("A flow is already running on this MultiStepInput.")
        self._running = True
        step: Optional[InputStep[S]] = start
        try:
            while step is not None:
                self._steps.append(step)
                if self._current is not None:
                    self._current.enabled = False
                    self._current.busy = True
                outcome = await self._invoke(step, state)
                step = self._navigate(outcome)
        finally:
            self._dispose_current()
            self._steps.clear()
            self._running = False

    async def show_quick_pick(
        self, params: QuickPickParameters[T]
    ) -> Union[T, QuickInputButton, str, None]:
        picker: QuickPick[T] = self._shell.create_quick_pick()
        picker.title = params.title
        picker.step = params.step
        picker.total_steps = params.total_steps
        picker.placeholder = params.placeholder
        picker.ignore_focus_out = True
        picker.items = list(params.items)
        picker.match_on_description = params.match_on_description
        picker.match_on_detail = params.match_on_detail
        picker.active_items = [params.active_item] if params.active_item is not None else []
        picker.buttons = self._buttons(params.can_go_back, params.buttons)

        result: "asyncio.Future[Any]" = asyncio.get_running_loop().create_future()
        disposables = [
            picker.on_did_trigger_button(lambda button: self._on_button(result, button)),
            picker.on_did_change_selection(
                lambda items: _settle(result, items[0] if items else None)
            ),
            picker.on_did_hide(lambda: _settle(result, None)),
        ]
        if params.accept_filter_box_text_as_selection:
            disposables.append(picker.on_did_accept(lambda: _settle(result, _accepted_value(picker))))
        try:
            self._replace_current(picker)
            return await result
        finally:
            for disposable in disposables:
                disposable.dispose()

    async def show_input_box(
        self, params: InputBoxParameters
    ) -> Union[str, QuickInputButton, None]:
        box: InputBox = self._shell.create_input_box()
        box.title = params.title
        box.step = params.step
        box.total_steps = params.total_steps
        box.password = params.password
        box.value = params.value or ""
        box.prompt = params.prompt
        box.ignore_focus_out = True
        box.buttons = self._buttons(None, params.buttons)

        result: "asyncio.Future[Any]" = asyncio.get_running_loop().create_future()
        latest: Optional[object] = None

        async def on_change_value(text: str) -> None:
            nonlocal latest
            token = latest = object()
            try:
                message = await params.validate(text)
            except Exception as exc:
                if token is latest:
                    _fail(result, exc)
                else:
                    LOGGER.debug("Ignoring failure of superseded validation: %s", exc)
                return
            # Only the most recently issued validation may update the message.
            if token is latest and not box.disposed:
                box.validation_message = message

        async def on_accept() -> None:
            value = box.value
            box.enabled = False
            box.busy = True
            try:
                message = await params.validate(value)
            except Exception as exc:
                _fail(result, exc)
                return
            if not message:
                _settle(result, value)
                return
            if box.disposed:
                return
            box.validation_message = message
            box.enabled = True
            box.busy = False

        disposables = [
            box.on_did_trigger_button(lambda button: self._on_button(result, button)),
            box.on_did_change_value(on_change_value),
            box.on_did_accept(on_accept),
            box.on_did_hide(lambda: _settle(result, None)),
        ]
        try:
            self._replace_current(box)
            return await result
        finally:
            for disposable in disposables:
                disposable.dispose()

    async def _invoke(self, step: InputStep[S], state: S) -> StepOutcome[S]:
        try:
            next_step = await step(self, state)
        except InputFlowAction as action:
            for signal, kind in _SIGNAL_KINDS:
                if isinstance(action, signal):
                    return StepOutcome(kind)
            return StepOutcome(OutcomeKind.FAILURE, error=action)
        except Exception as exc:
            return StepOutcome(OutcomeKind.FAILURE, error=exc)
        return StepOutcome(OutcomeKind.FORWARD, next_step=next_step)

    def _navigate(self, outcome: StepOutcome[S]) -> Optional[InputStep[S]]:
        if outcome.kind is OutcomeKind.FORWARD:
            return outcome.next_step
        if outcome.kind is OutcomeKind.BACK:
            self._steps.pop()
            previous = self._steps.pop() if self._steps else None
            LOGGER.debug("Going back; %s step(s) left in history", len(self._steps))
            return previous
        if outcome.kind is OutcomeKind.RESUME:
            LOGGER.debug("Resuming step at depth %s", len(self._steps))
            return self._steps.pop()
        if outcome.kind is OutcomeKind.CANCEL:
            LOGGER.debug("Flow cancelled at depth %s", len(self._steps))
            return None
        raise outcome.error  # type: ignore[misc]

    def _buttons(
        self, can_go_back: Optional[bool], extra: Optional[Sequence[QuickInputButton]]
    ) -> List[QuickInputButton]:
        buttons: List[QuickInputButton] = []
        if len(self._steps) > 1 and can_go_back is not False:
            buttons.append(QuickInputButtons.BACK)
        buttons.extend(extra or ())
        return buttons

    @staticmethod
    def _on_button(result: "asyncio.Future[Any]", button: QuickInputButton) -> None:
        if button is QuickInputButtons.BACK:
            _fail(result, FlowBack())
        else:
            _settle(result, button)

    def _replace_current(self, prompt: QuickInput) -> None:
        self._dispose_current()
        self._current = prompt
        prompt.show()

    def _dispose_current(self) -> None:
        current, self._current = self._current, None
        if current is not None:
            current.dispose()


class MultiStepInputFactory:
    def __init__(self, shell: PromptShell) -> None:
        self._shell = shell

    def create(self) -> MultiStepInput[Any]:
        return MultiStepInput(self._shell)
