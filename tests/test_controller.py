import itertools
import logging

import numpy as np

from pictionary.camera.stream import PermissionStatus
from pictionary.classification.classifier import ClassifierNotAvailableError
from pictionary.classification.types import Prediction
from pictionary.config import LoopConfig
from pictionary.controller import Controller


class ManualScheduler:
    """Collects requested callbacks; tick() runs everything pending once."""

    def __init__(self):
        self.pending = {}
        self.cancelled = []
        self._ids = itertools.count(1)

    def request(self, callback):
        handle = next(self._ids)
        self.pending[handle] = callback
        return handle

    def cancel(self, handle):
        self.pending.pop(handle, None)
        self.cancelled.append(handle)

    def tick(self):
        items = list(self.pending.items())
        self.pending.clear()
        for _, cb in items:
            cb()


class FakeCamera:
    def __init__(self, status=PermissionStatus.GRANTED):
        self.status = status

    def request_permission(self):
        return self.status


class FakeClassifier:
    def __init__(self, outputs):
        self.outputs = list(outputs)
        self.calls = []

    def classify(self, tensor, topk=None):
        self.calls.append(topk)
        out = self.outputs.pop(0) if self.outputs else []
        if isinstance(out, Exception):
            raise out
        return out


def _tensor():
    return np.zeros((200, 152, 3), dtype=np.uint8)


def _frames():
    return itertools.repeat(_tensor())


def _make(outputs, status=PermissionStatus.GRANTED, threshold=0.3):
    sched = ManualScheduler()
    clf = FakeClassifier(outputs)
    ctl = Controller(
        camera=FakeCamera(status),
        scheduler=sched,
        loop=LoopConfig(threshold=threshold),
        loader=lambda params: clf,
    )
    ctl.initialize()
    return ctl, sched, clf


def test_initialize_sets_permission_and_model(caplog):
    caplog.set_level(logging.INFO, logger="pictionary.controller")
    ctl, _, clf = _make([])
    assert ctl.state.has_permission is True
    assert ctl.state.framework_ready is True
    assert ctl.model is clf
    assert "permissions status: granted" in caplog.text


def test_initialize_denied_still_loads_model():
    ctl, _, clf = _make([], status=PermissionStatus.DENIED)
    assert ctl.state.has_permission is False
    assert ctl.state.framework_ready is True
    assert ctl.model is clf


def test_initialize_model_unavailable():
    def boom(params):
        raise ClassifierNotAvailableError("pip install ultralytics")

    ctl = Controller(camera=FakeCamera(), scheduler=ManualScheduler(), loader=boom)
    state = ctl.initialize()
    assert state.framework_ready is True
    assert ctl.model is None
    assert "ultralytics" in state.model_error
    assert ctl.get_prediction(_tensor()) is False


def test_initialize_is_idempotent():
    loads = []
    ctl = Controller(camera=FakeCamera(), scheduler=ManualScheduler(), loader=lambda p: loads.append(p) or object())
    ctl.initialize()
    ctl.initialize()
    assert len(loads) == 1


def test_loop_keeps_polling_until_threshold_crossed():
    ctl, sched, clf = _make([
        [Prediction("monitor", 0.10)],
        [Prediction("screen, CRT screen", 0.25)],
        [Prediction("joystick", 0.81)],
    ])
    ctl.handle_camera_stream(_frames())
    assert not ctl.state.prediction_found
    assert len(sched.pending) == 1

    sched.tick()
    assert not ctl.state.prediction_found
    assert len(sched.pending) == 1

    sched.tick()
    assert ctl.state.prediction_found is True
    assert ctl.state.prediction == "joystick"
    assert sched.pending == {}
    assert not ctl.running
    # always asks the model for its single best guess
    assert clf.calls == [1, 1, 1]


def test_threshold_is_strict():
    ctl, sched, _ = _make([[Prediction("joystick", 0.3)]])
    assert ctl.get_prediction(_tensor()) is False
    assert ctl.state.prediction_found is False


def test_custom_threshold():
    ctl, _, _ = _make([[Prediction("joystick", 0.5)]], threshold=0.6)
    assert ctl.get_prediction(_tensor()) is False


def test_missing_tensor_is_skipped():
    ctl, sched, clf = _make([[Prediction("joystick", 0.9)]])
    ctl.handle_camera_stream(iter([None, _tensor()]))
    assert clf.calls == []
    assert len(sched.pending) == 1
    sched.tick()
    assert ctl.state.prediction == "joystick"


def test_empty_predictions_keep_looping():
    ctl, sched, _ = _make([[], [Prediction("banana", 0.95)]])
    ctl.handle_camera_stream(_frames())
    assert len(sched.pending) == 1
    sched.tick()
    assert ctl.state.prediction == "banana"


def test_inference_error_skips_frame():
    ctl, sched, _ = _make([RuntimeError("cuda oom"), [Prediction("banana", 0.95)]])
    ctl.handle_camera_stream(_frames())
    assert ctl.state.prediction_found is False
    assert len(sched.pending) == 1
    sched.tick()
    assert ctl.state.prediction == "banana"


def test_stream_not_started_when_prediction_already_found():
    ctl, sched, clf = _make([[Prediction("joystick", 0.9)]])
    ctl.handle_camera_stream(_frames())
    assert ctl.state.prediction_found
    ctl.handle_camera_stream(_frames())
    assert clf.calls == [1]
    assert sched.pending == {}


def test_load_new_prediction_resets_and_restarts():
    ctl, sched, clf = _make([
        [Prediction("joystick", 0.9)],
        [Prediction("monitor", 0.2)],
    ])
    ctl.handle_camera_stream(_frames())
    assert ctl.state.prediction == "joystick"

    ctl.load_new_prediction()
    assert ctl.state.prediction == ""
    assert ctl.state.prediction_found is False
    assert len(clf.calls) == 2
    assert len(sched.pending) == 1


def test_load_new_prediction_does_not_double_schedule():
    ctl, sched, _ = _make([[Prediction("monitor", 0.1)]] * 3)
    ctl.handle_camera_stream(_frames())
    ctl.load_new_prediction()
    assert len(sched.pending) == 1


def test_cancel_stops_pending_callback():
    ctl, sched, _ = _make([[Prediction("monitor", 0.1)]])
    ctl.handle_camera_stream(_frames())
    (handle,) = sched.pending
    ctl.cancel()
    assert sched.pending == {}
    assert handle in sched.cancelled
    assert not ctl.running
    # second cancel is a no-op
    ctl.cancel()
    assert sched.cancelled == [handle]


def test_listeners_see_each_transition():
    ctl, sched, _ = _make([[Prediction("joystick", 0.9)]])
    seen = []
    ctl.add_listener(lambda st: seen.append((st.prediction_found, st.prediction)))
    ctl.handle_camera_stream(_frames())
    ctl.load_new_prediction()
    assert seen[0] == (True, "joystick")
    assert seen[1] == (False, "")


def test_default_loop_config_is_per_instance():
    a = Controller(camera=FakeCamera(), scheduler=ManualScheduler())
    b = Controller(camera=FakeCamera(), scheduler=ManualScheduler())
    a.loop_config.threshold = 0.9
    assert b.loop_config.threshold == LoopConfig().threshold


def test_loop_stops_when_stream_ends(caplog):
    caplog.set_level(logging.INFO, logger="pictionary.controller")
    ctl, sched, clf = _make([[Prediction("monitor", 0.1)]] * 2)
    ctl.handle_camera_stream(iter([_tensor(), _tensor()]))
    assert len(sched.pending) == 1
    sched.tick()
    assert len(sched.pending) == 1
    sched.tick()
    assert sched.pending == {}
    assert not ctl.running
    assert clf.calls == [1, 1]
    assert caplog.text.count("Camera stream ended") == 1

    # a reset on a finished stream does not spin either
    ctl.load_new_prediction()
    assert sched.pending == {}
