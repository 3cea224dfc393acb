from __future__ import annotations

from typing import Optional

from PySide6.QtCore import Qt, Signal
from PySide6.QtWidgets import (
    QLabel, QProgressBar, QPushButton, QScrollArea, QVBoxLayout, QWidget
)


class PredictionPanel(QWidget):
    """Shows the found label and the button that starts a new round."""

    newPredictionRequested = Signal()

    def __init__(self, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.setObjectName("translationView")
        self._build_ui()

    def _build_ui(self) -> None:
        root = QVBoxLayout(self)
        root.setContentsMargins(20, 20, 20, 20)

        self.lbl_word = QLabel("")
        self.lbl_word.setObjectName("wordTextField")
        self.lbl_word.setAlignment(Qt.AlignRight | Qt.AlignTop)
        self.lbl_word.setWordWrap(True)
        self.lbl_word.setTextInteractionFlags(Qt.TextSelectableByMouse)

        scroll = QScrollArea()
        scroll.setWidgetResizable(True)
        scroll.setFrameShape(QScrollArea.NoFrame)
        scroll.setMinimumHeight(200)
        scroll.setWidget(self.lbl_word)
        root.addWidget(scroll, 1)

        # shown only while no prediction is set
        self.busy = QProgressBar()
        self.busy.setRange(0, 0)
        self.busy.setTextVisible(False)
        root.addWidget(self.busy)

        self.btn_new = QPushButton("Check new prediction")
        self.btn_new.setObjectName("newPredictionButton")
        self.btn_new.clicked.connect(self.newPredictionRequested.emit)
        root.addWidget(self.btn_new)

        self.set_prediction("")

    def set_prediction(self, text: str) -> None:
        found = bool(text)
        self.lbl_word.setText(text)
        self.busy.setVisible(not found)
        self.btn_new.setEnabled(found)
