"""
Tests for the error handler, the stop signal and traceback pruning.
"""

from __future__ import annotations

import os
import traceback

import pytest

import dothunk
from dothunk import CONTINUE, StopSignal, create


def boom(error, value):
    raise ValueError("boom")


class TestOnError:
    def test_handler_receives_error_and_halts_chain(self, scheduler, recorder):
        errors = []
        thunk = create(scheduler=scheduler, onerror=errors.append)

        thunk(1)(boom)(recorder)
        scheduler.run()

        assert len(errors) == 1
        assert isinstance(errors[0], ValueError)
        assert recorder.calls == []

    def test_bare_callable_is_error_handler_shorthand(self, scheduler, recorder):
        errors = []
        thunk = create(errors.append, scheduler=scheduler)

        thunk.digest(KeyError("missing"))(recorder)

        assert isinstance(errors[0], KeyError)
        assert recorder.calls == []

    def test_continue_resumes_with_none(self, scheduler, recorder):
        thunk = create(scheduler=scheduler, onerror=lambda error: CONTINUE)

        thunk(1)(boom)(recorder)

        assert recorder.calls == [(None, None)]

    def test_truthy_return_is_not_continue(self, scheduler, recorder):
        thunk = create(scheduler=scheduler, onerror=lambda error: True)

        thunk(1)(boom)(recorder)

        assert recorder.calls == []

    def test_terminal_error_goes_to_handler_asynchronously(self, scheduler):
        errors = []
        thunk = create(scheduler=scheduler, onerror=errors.append)

        thunk(1)(boom)
        assert errors == []

        scheduler.run()
        assert len(errors) == 1

    def test_failing_handler_is_rethrown(self, scheduler):
        def handler(error):
            raise RuntimeError("handler broke")

        thunk = create(scheduler=scheduler, onerror=handler)
        thunk(1)(boom)(lambda error, value: None)

        with pytest.raises(RuntimeError, match="handler broke"):
            scheduler.run()

    def test_without_handler_error_reaches_step(self, thunk, recorder):
        thunk(1)(boom)(recorder)

        assert isinstance(recorder.errors[0], ValueError)


class TestStop:
    def test_stop_in_step_halts_chain(self, scheduler, recorder):
        stops = []
        errors = []
        thunk = create(scheduler=scheduler, onstop=stops.append, onerror=errors.append)

        def step(error, value):
            thunk.stop("x")
            return "unreachable"

        thunk(1)(step)(recorder)
        assert stops == []

        scheduler.run()
        assert recorder.calls == []
        assert errors == []
        assert len(stops) == 1
        signal = stops[0]
        assert isinstance(signal, StopSignal)
        assert signal.message == "x"
        assert signal.status == 19
        assert signal.code == "SIGSTOP"

    def test_stop_default_message(self, thunk):
        with pytest.raises(StopSignal) as info:
            thunk.stop()
        assert info.value.message == "process stopped"

    def test_stop_is_not_caught_by_except_exception(self, thunk):
        caught = []
        try:
            try:
                thunk.stop("through")
            except Exception:
                caught.append(True)
        except StopSignal:
            pass
        assert caught == []

    def test_stop_inside_generator(self, scheduler, recorder):
        stops = []
        thunk = create(scheduler=scheduler, onstop=stops.append)

        def worker():
            yield thunk.delay(0.5)
            thunk.stop("cancelled")
            yield "never"

        thunk(worker)(recorder)
        scheduler.run()

        assert recorder.calls == []
        assert [signal.message for signal in stops] == ["cancelled"]

    def test_stop_without_handler_is_silent(self, thunk, scheduler, recorder):
        def step(error, value):
            thunk.stop()

        thunk(1)(step)
        thunk(2)(step)(recorder)
        scheduler.run()

        assert recorder.calls == []

    def test_stop_does_not_affect_sibling_chains(self, thunk, scheduler, make_recorder):
        stopped = make_recorder()
        sibling = make_recorder()

        def step(error, value):
            thunk.stop()

        thunk.delay(0.1)(step)(stopped)
        thunk.delay(0.2)(lambda error, value: "still running")(sibling)
        scheduler.run()

        assert stopped.calls == []
        assert sibling.calls == [(None, "still running")]


class TestDebugHook:
    def test_debug_sees_every_settlement(self, scheduler):
        seen = []
        thunk = create(scheduler=scheduler, debug=lambda *args: seen.append(args))

        thunk(1)(lambda error, value: value + 1)(lambda error, value: None)

        assert seen == [(None, 1), (None, 2)]

    def test_debug_sees_errors(self, scheduler):
        seen = []
        thunk = create(scheduler=scheduler, debug=lambda *args: seen.append(args))

        thunk(1)(boom)(lambda error, value: None)

        assert seen[0] == (None, 1)
        assert isinstance(seen[1][0], ValueError)


class TestPruneTraceback:
    def test_internal_frames_are_removed(self, scheduler, recorder):
        thunk = create(scheduler=scheduler, prune_traceback=True)

        thunk(1)(boom)(recorder)

        error = recorder.errors[0]
        package_dir = os.path.dirname(os.path.abspath(dothunk.__file__))
        filenames = [frame.filename for frame in traceback.extract_tb(error.__traceback__)]
        assert filenames
        assert all(os.path.dirname(os.path.abspath(name)) != package_dir for name in filenames)
        assert os.path.abspath(__file__) in [os.path.abspath(name) for name in filenames]

    def test_frames_kept_by_default(self, thunk, recorder):
        thunk(1)(boom)(recorder)

        error = recorder.errors[0]
        package_dir = os.path.dirname(os.path.abspath(dothunk.__file__))
        filenames = [frame.filename for frame in traceback.extract_tb(error.__traceback__)]
        assert any(os.path.dirname(os.path.abspath(name)) == package_dir for name in filenames)
