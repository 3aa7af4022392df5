"""Observable controller state.

ControllerState owns the SessionStateMachine together with everything the
UI shows: app snapshot, info labels, control flags and toggle positions.
It is only ever mutated on the control thread.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable

from waydroid_controller.models import (
    AppEntry,
    ControlFlags,
    ImagePackageState,
    InfoLabels,
    OperationKind,
    PendingOperation,
    SessionState,
)
from waydroid_controller.state.events import (
    AppsChanged,
    ControlsChanged,
    ImageStateChanged,
    InfoChanged,
    PendingChanged,
    Reinitialized,
    SessionStateChanged,
    StateEvent,
    ToggleChanged,
)
from waydroid_controller.state.machine import SessionEvent, SessionStateMachine
from waydroid_controller.state.snapshot import StateSnapshot

if TYPE_CHECKING:
    from textual.app import App

logger = logging.getLogger(__name__)

TOGGLE_NAMES = ("session", "uevent", "vanilla", "gapps")


@dataclass
class ControllerState:
    """Reactive controller state with event dispatch.

    Two notification mechanisms are provided, as elsewhere in the package:

    1. **Callback subscriptions** via ``subscribe()``/``unsubscribe()``.
    2. **Textual Message posting** once ``connect_app()`` was called.
    """

    machine: SessionStateMachine = field(default_factory=SessionStateMachine)
    apps: list[AppEntry] = field(default_factory=list)
    info: InfoLabels = field(default_factory=InfoLabels)
    flags: ControlFlags = field(default_factory=ControlFlags)
    toggles: dict[str, bool] = field(
        default_factory=lambda: {name: False for name in TOGGLE_NAMES}
    )
    selected_image: ImagePackageState = ImagePackageState.NONE

    _listeners: dict[StateEvent, list[Callable[..., Any]]] = field(
        default_factory=lambda: {e: [] for e in StateEvent}, repr=False
    )
    _app: App | None = field(default=None, repr=False)

    # =========================================================================
    # Read access
    # =========================================================================

    @property
    def session_state(self) -> SessionState:
        return self.machine.state

    @property
    def image_state(self) -> ImagePackageState:
        return self.machine.image_state

    @property
    def pending(self) -> PendingOperation | None:
        return self.machine.pending

    # =========================================================================
    # Connection and Event System
    # =========================================================================

    def connect_app(self, app: App) -> None:
        """Connect to a Textual App for message posting."""
        self._app = app

    def _post_message(self, message: Any) -> None:
        if self._app is not None:
            self._app.post_message(message)

    def subscribe(self, event: StateEvent, callback: Callable[..., Any]) -> None:
        """Register callback for state event."""
        self._listeners.setdefault(event, []).append(callback)

    def unsubscribe(self, event: StateEvent, callback: Callable[..., Any]) -> None:
        """Remove callback from event."""
        try:
            self._listeners.get(event, []).remove(callback)
        except ValueError:
            pass

    def emit(self, event: StateEvent, **kwargs: Any) -> None:
        """Dispatch event to all subscribers.

        A failing subscriber is logged and does not stop the others.
        """
        for callback in list(self._listeners.get(event, [])):
            try:
                callback(**kwargs)
            except Exception:
                logger.exception("Subscriber for %s failed", event.value)

    # =========================================================================
    # Mutation
    # =========================================================================

    def apply(self, event: SessionEvent) -> SessionState:
        """Move the session through the state machine and notify."""
        old = self.machine.state
        new = self.machine.transition(event)
        self.emit(StateEvent.SESSION_STATE_CHANGED, old=old, new=new)
        self._post_message(SessionStateChanged(old, new))
        return new

    def set_image_state(self, image_state: ImagePackageState) -> None:
        if self.machine.image_state is image_state:
            return
        self.machine.image_state = image_state
        self.emit(StateEvent.IMAGE_STATE_CHANGED, image_state=image_state)
        self._post_message(ImageStateChanged(image_state))

    def begin(self, kind: OperationKind) -> PendingOperation:
        """Claim the pending slot (raises StateConflict) and notify."""
        op = self.machine.begin(kind)
        self.emit(StateEvent.PENDING_CHANGED, pending=op)
        self._post_message(PendingChanged(op))
        return op

    def finish(self, op: PendingOperation) -> bool:
        """Release the pending slot if ``op`` still holds it."""
        if not self.machine.finish(op):
            return False
        self.emit(StateEvent.PENDING_CHANGED, pending=None)
        self._post_message(PendingChanged(None))
        return True

    def replace_apps(self, apps: list[AppEntry]) -> None:
        """Replace the app snapshot wholesale."""
        self.apps = list(apps)
        self.emit(StateEvent.APPS_CHANGED, apps=list(self.apps))
        self._post_message(AppsChanged(list(self.apps)))

    def set_info(self, info: InfoLabels) -> None:
        self.info = info
        self.emit(StateEvent.INFO_CHANGED, info=info)
        self._post_message(InfoChanged(info))

    def set_flags(self, flags: ControlFlags) -> None:
        self.flags = flags
        self.emit(StateEvent.CONTROLS_CHANGED, flags=flags)
        self._post_message(ControlsChanged(flags))

    def set_toggle(self, name: str, value: bool) -> None:
        if name not in self.toggles:
            raise KeyError(f"Unknown toggle: {name}")
        self.toggles[name] = value
        self.emit(StateEvent.TOGGLE_CHANGED, name=name, value=value)
        self._post_message(ToggleChanged(name, value))

    def reset(self, session_state: SessionState, image_state: ImagePackageState) -> None:
        """Replace lifecycle state with probed ground truth."""
        old = self.machine.state
        self.machine.reset(session_state, image_state)
        self.selected_image = image_state
        if old is not session_state:
            self.emit(StateEvent.SESSION_STATE_CHANGED, old=old, new=session_state)
            self._post_message(SessionStateChanged(old, session_state))
        self.emit(StateEvent.REINITIALIZED)
        self._post_message(Reinitialized())

    # =========================================================================
    # State Query (External Observation)
    # =========================================================================

    def to_snapshot(self) -> StateSnapshot:
        """Create an immutable snapshot of the current state."""
        return StateSnapshot(
            session_state=self.session_state,
            image_state=self.image_state,
            pending=self.pending,
            apps=tuple(self.apps),
            info=self.info,
            flags=self.flags,
            toggles=dict(self.toggles),
            selected_image=self.selected_image,
        )
