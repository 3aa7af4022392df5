"""Tests for the session state machine."""

import pytest

from waydroid_controller.exceptions import StateConflict
from waydroid_controller.models import ImagePackageState, OperationKind, SessionState
from waydroid_controller.state import ALLOWED_FROM, TRANSITIONS, SessionEvent, SessionStateMachine


class TestTransitions:
    """Tests for lifecycle transitions."""

    @pytest.mark.parametrize(
        "start,event,end",
        [
            (SessionState.NOT_INSTALLED, SessionEvent.RUNTIME_INSTALLED, SessionState.STOPPED),
            (SessionState.STOPPED, SessionEvent.ENABLE, SessionState.STARTING),
            (SessionState.STARTING, SessionEvent.READY, SessionState.RUNNING),
            (SessionState.STARTING, SessionEvent.START_FAILED, SessionState.STOPPED),
            (SessionState.RUNNING, SessionEvent.DISABLE, SessionState.STOPPED),
        ],
    )
    def test_legal(self, start, event, end):
        machine = SessionStateMachine(state=start)
        assert machine.can(event)
        assert machine.transition(event) is end
        assert machine.state is end

    def test_table_is_complete(self):
        assert len(TRANSITIONS) == 5

    @pytest.mark.parametrize(
        "start,event",
        [
            (SessionState.STOPPED, SessionEvent.READY),
            (SessionState.RUNNING, SessionEvent.ENABLE),
            (SessionState.NOT_INSTALLED, SessionEvent.ENABLE),
            (SessionState.STARTING, SessionEvent.DISABLE),
            (SessionState.STOPPED, SessionEvent.DISABLE),
        ],
    )
    def test_illegal(self, start, event):
        machine = SessionStateMachine(state=start)
        assert not machine.can(event)
        with pytest.raises(StateConflict):
            machine.transition(event)
        assert machine.state is start


class TestPendingOperation:
    """Tests for the single pending-operation slot."""

    def test_begin_and_finish(self):
        machine = SessionStateMachine(state=SessionState.STOPPED)
        op = machine.begin(OperationKind.ENABLE)

        assert machine.pending == op
        assert machine.is_current(op)
        assert machine.finish(op) is True
        assert machine.pending is None

    def test_second_operation_rejected(self):
        machine = SessionStateMachine(state=SessionState.STOPPED)
        machine.begin(OperationKind.ENABLE)

        with pytest.raises(StateConflict) as exc_info:
            machine.begin(OperationKind.FACTORY_RESET)
        assert exc_info.value.context["pending"].startswith("enable#")

    def test_ids_are_unique(self):
        machine = SessionStateMachine(state=SessionState.STOPPED)
        first = machine.begin(OperationKind.ENABLE)
        machine.finish(first)
        second = machine.begin(OperationKind.ENABLE)
        assert first != second
        assert second.id > first.id

    def test_stale_finish_ignored(self):
        machine = SessionStateMachine(state=SessionState.STOPPED)
        first = machine.begin(OperationKind.ENABLE)
        machine.finish(first)
        second = machine.begin(OperationKind.FACTORY_RESET)

        assert machine.finish(first) is False
        assert machine.pending == second
        assert not machine.is_current(first)

    @pytest.mark.parametrize("kind", list(OperationKind))
    def test_allowed_states(self, kind):
        for state in SessionState:
            machine = SessionStateMachine(state=state)
            if state in ALLOWED_FROM[kind]:
                assert machine.begin(kind).kind is kind
            else:
                with pytest.raises(StateConflict):
                    machine.begin(kind)

    def test_uevent_only_while_running(self):
        assert ALLOWED_FROM[OperationKind.TOGGLE_UEVENT] == {SessionState.RUNNING}

    def test_factory_reset_only_while_stopped(self):
        assert ALLOWED_FROM[OperationKind.FACTORY_RESET] == {SessionState.STOPPED}


class TestIndependentOperations:
    """Tests for require_independent."""

    def test_allowed_while_running_and_idle(self):
        SessionStateMachine(state=SessionState.RUNNING).require_independent("list_apps")

    @pytest.mark.parametrize(
        "state", [SessionState.NOT_INSTALLED, SessionState.STOPPED, SessionState.STARTING]
    )
    def test_requires_running(self, state):
        with pytest.raises(StateConflict):
            SessionStateMachine(state=state).require_independent("launch_app")

    def test_blocked_by_pending(self):
        machine = SessionStateMachine(state=SessionState.RUNNING)
        machine.begin(OperationKind.DISABLE)
        with pytest.raises(StateConflict):
            machine.require_independent("remove_app")


class TestReset:
    """Tests for adopting host state."""

    def test_reset_clears_pending(self):
        machine = SessionStateMachine(state=SessionState.STOPPED)
        machine.begin(OperationKind.INSTALL_IMAGE)

        machine.reset(SessionState.RUNNING, ImagePackageState.GAPPS)

        assert machine.pending is None
        assert machine.state is SessionState.RUNNING
        assert machine.image_state is ImagePackageState.GAPPS
