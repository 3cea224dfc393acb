from __future__ import annotations

import logging
import sys
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, List, Optional

import numpy as np
import cv2

from PySide6.QtWidgets import (
    QApplication, QLabel, QMainWindow, QMessageBox, QProgressBar, QStackedWidget, QVBoxLayout, QWidget
)
from PySide6.QtCore import Qt, QRectF, QSize, Signal
from PySide6.QtGui import QAction, QCloseEvent, QImage, QPainter, QPixmap

from .camera.stream import CameraStream
from .classification.classifier import ClassifierParams, ImageClassifier, load_classifier
from .config import AppConfig
from .controller import AppState, Controller
from .ui.frame_scheduler import QtFrameScheduler
from .ui.prediction_panel import PredictionPanel

logger = logging.getLogger(__name__)

STYLE = """
QMainWindow { background-color: #E8E8E8; }
#header { background-color: #41005d; }
#title { margin: 10px; font-size: 18px; font-weight: bold; color: #ffffff; }
#translationView { background-color: #ffffff; border: 1px solid #cccccc; }
#wordTextField { font-size: 20px; margin-bottom: 50px; }
#newPredictionButton { background-color: #9400D3; color: #ffffff; padding: 8px; }
#legendTextField { font-style: italic; color: #888888; }
"""


def _cv_to_qimage(bgr: np.ndarray) -> QImage:
    if bgr.ndim == 2:
        h, w = bgr.shape
        return QImage(bgr.data, w, h, w, QImage.Format_Grayscale8).copy()
    rgb = cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)
    h, w = rgb.shape[:2]
    return QImage(rgb.data, w, h, 3 * w, QImage.Format_RGB888).copy()


class CameraView(QWidget):
    """Live preview of the frames being classified."""

    def __init__(self, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self._pix: Optional[QPixmap] = None
        self.setMinimumSize(QSize(350, 400))

    def set_frame(self, bgr: np.ndarray) -> None:
        self._pix = QPixmap.fromImage(_cv_to_qimage(bgr))
        self.update()

    def clear(self) -> None:
        self._pix = None
        self.update()

    def _fit_rect(self) -> QRectF:
        assert self._pix is not None
        w, h = self._pix.width(), self._pix.height()
        scale = min(self.width() / w, self.height() / h)
        x0 = (self.width() - w * scale) * 0.5
        y0 = (self.height() - h * scale) * 0.5
        return QRectF(x0, y0, w * scale, h * scale)

    def paintEvent(self, ev) -> None:  # type: ignore[override]
        p = QPainter(self)
        p.fillRect(self.rect(), Qt.black)
        if not self._pix:
            p.setPen(Qt.white)
            p.drawText(self.rect(), Qt.AlignCenter, "Waiting for camera…")
            p.end()
            return
        p.drawPixmap(self._fit_rect(), self._pix, QRectF(0, 0, self._pix.width(), self._pix.height()))
        p.end()


class StatusPage(QWidget):
    """Centered message with an optional busy bar (loading / no access)."""

    def __init__(self, text: str, busy: bool, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        lay = QVBoxLayout(self)
        lay.addStretch(1)
        self.label = QLabel(text)
        self.label.setObjectName("legendTextField")
        self.label.setAlignment(Qt.AlignCenter)
        self.label.setWordWrap(True)
        lay.addWidget(self.label)
        if busy:
            bar = QProgressBar()
            bar.setRange(0, 0)
            bar.setTextVisible(False)
            lay.addWidget(bar)
        lay.addStretch(1)

    def set_text(self, text: str) -> None:
        self.label.setText(text)


class MainWindow(QMainWindow):
    """Main application window."""

    stateChanged = Signal(object)
    initFailed = Signal(str)

    PAGE_LOADING, PAGE_NO_ACCESS, PAGE_CAMERA, PAGE_PREDICTION = range(4)

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        camera: Optional[CameraStream] = None,
        loader: Optional[Callable[[ClassifierParams], ImageClassifier]] = None,
    ) -> None:
        super().__init__()
        config = config if config is not None else AppConfig()
        self.config = config
        self.setWindowTitle(config.title)
        self.resize(420, 720)
        self.setStyleSheet(STYLE)

        self.camera = camera if camera is not None else CameraStream(config.camera)
        self.scheduler = QtFrameScheduler(config.loop.interval_ms, self)
        self.controller = Controller(
            camera=self.camera,
            scheduler=self.scheduler,
            loop=config.loop,
            classifier_params=config.classifier.to_params(),
            loader=loader or load_classifier,
        )
        # listeners may fire on the init worker thread; the signal hops to the GUI thread
        self.controller.add_listener(self.stateChanged.emit)
        self.stateChanged.connect(self._render)
        self.initFailed.connect(self._on_init_failed)

        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="pictionary-init")
        self._stream_started = False
        self._model_warned = False
        self._closing = False
        self._init_future: Optional[Future] = None

        self._create_body()
        self._create_menu()
        self.statusBar().showMessage("Loading model…")

    def _create_body(self) -> None:
        central = QWidget(self)
        root = QVBoxLayout(central)
        root.setContentsMargins(0, 0, 0, 0)

        header = QWidget()
        header.setObjectName("header")
        lh = QVBoxLayout(header)
        title = QLabel(self.config.title)
        title.setObjectName("title")
        title.setAlignment(Qt.AlignCenter)
        lh.addWidget(title)
        root.addWidget(header)

        self.pages = QStackedWidget()
        self.page_loading = StatusPage("Loading camera and model…", busy=True)
        self.page_no_access = StatusPage("No access to camera", busy=False)
        self.camera_view = CameraView()
        self.prediction_panel = PredictionPanel()
        self.prediction_panel.newPredictionRequested.connect(self.controller.load_new_prediction)
        for w in (self.page_loading, self.page_no_access, self.camera_view, self.prediction_panel):
            self.pages.addWidget(w)
        root.addWidget(self.pages, 1)

        self.camera.on_frame = self.camera_view.set_frame
        self.setCentralWidget(central)

    def _create_menu(self) -> None:
        file_menu = self.menuBar().addMenu("&File")

        new_action = QAction("New prediction", self)
        new_action.setShortcut("Ctrl+N")
        new_action.triggered.connect(self.controller.load_new_prediction)
        file_menu.addAction(new_action)

        exit_action = QAction("E&xit", self)
        exit_action.setShortcut("Ctrl+Q")
        exit_action.triggered.connect(self.close)
        file_menu.addAction(exit_action)

    # ---- startup ----
    def start(self) -> None:
        self._init_future = self._executor.submit(self.controller.initialize)
        self._init_future.add_done_callback(self._on_init_done)

    def _on_init_done(self, fut: Future) -> None:
        if self._closing:
            # the window went away while the worker was still opening the device
            self.camera.close()
            return
        exc = fut.exception()
        if exc is not None:
            logger.error("Initialization failed: %s: %s", type(exc).__name__, exc)
            self.initFailed.emit(f"{type(exc).__name__}: {exc}")

    def _on_init_failed(self, message: str) -> None:
        if self._closing:
            return
        self.page_no_access.set_text(f"Initialization failed\n{message}")
        self.pages.setCurrentIndex(self.PAGE_NO_ACCESS)
        QMessageBox.critical(self, "Initialization error", message)

    # ---- state → view ----
    def _render(self, state: AppState) -> None:
        if self._closing:
            return
        if not state.framework_ready:
            self.pages.setCurrentIndex(self.PAGE_LOADING)
            return

        if not state.has_permission:
            self.page_no_access.set_text("No access to camera")
            self.pages.setCurrentIndex(self.PAGE_NO_ACCESS)
            self.statusBar().showMessage("Camera permission denied")
            return

        if self.controller.model is None:
            self.page_no_access.set_text(f"Model unavailable\n{state.model_error or ''}")
            self.pages.setCurrentIndex(self.PAGE_NO_ACCESS)
            self.statusBar().showMessage("Model unavailable")
            if not self._model_warned:
                self._model_warned = True
                QMessageBox.warning(self, "Classifier", state.model_error or "Model unavailable.")
            return

        if state.prediction_found:
            self.prediction_panel.set_prediction(state.prediction)
            self.pages.setCurrentIndex(self.PAGE_PREDICTION)
            self.statusBar().showMessage(f"Prediction: {state.prediction}")
            return

        self.prediction_panel.set_prediction("")
        self.pages.setCurrentIndex(self.PAGE_CAMERA)
        self.statusBar().showMessage(
            f"Looking… (threshold > {self.config.loop.threshold:.2f}, model={self.config.classifier.weights})")
        if not self._stream_started:
            self._stream_started = True
            self.controller.handle_camera_stream(self.camera.tensors())

    # ---- teardown ----
    def closeEvent(self, ev: QCloseEvent) -> None:  # type: ignore[override]
        self._closing = True
        self.controller.cancel()
        self.scheduler.cancel_all()
        self.camera.close()
        self._executor.shutdown(wait=False, cancel_futures=True)
        super().closeEvent(ev)


def run_gui(config: AppConfig, argv: Optional[List[str]] = None) -> int:
    app = QApplication(argv if argv is not None else sys.argv[:1])
    win = MainWindow(config)
    win.show()
    win.start()
    return app.exec()
