"""Qt main window for the UWAVE monitor application."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

import numpy as np
import pyqtgraph as pg
from PyQt6 import QtCore, QtWidgets
from qasync import asyncSlot

from .. import config
from ..ble import BleakTransport, BleDeviceInfo, Transport, TransportError, UserCancelled
from ..buffers import MeasurementRingBuffer
from ..device_manager import ConnectionFailed, DeviceManager
from ..discovery import DiscoveryGateway
from ..registry import ConnectionState, DeviceRecord, DeviceRegistry, NotFound
from ..sim_device import SimulatedTransport
from .rows import row_texts, stale_action_rows

logger = logging.getLogger(__name__)

pg.setConfigOptions(antialias=False)

COLUMNS = ("Device Name", "Measurement", "Battery", "Action")


class RegistryBridge(QtCore.QObject):
    """Bridge core callbacks to Qt signals."""

    devices_changed = QtCore.pyqtSignal(object)
    measurement_received = QtCore.pyqtSignal(str, float)
    status_changed = QtCore.pyqtSignal(str)

    def emit_devices(self, snapshot: Tuple[DeviceRecord, ...]) -> None:
        self.devices_changed.emit(snapshot)

    def emit_measurement(self, device_id: str, value: float) -> None:
        self.measurement_received.emit(device_id, value)

    def emit_status(self, message: str) -> None:
        self.status_changed.emit(message)


class MainWindow(QtWidgets.QMainWindow):
    """Top-level application window."""

    def __init__(
        self,
        simulate: bool = False,
        scan_timeout: float = config.DEFAULT_SCAN_TIMEOUT,
    ) -> None:
        super().__init__()
        self.setWindowTitle("UWAVE Monitor")
        self._bridge = RegistryBridge()
        self._bridge.devices_changed.connect(self._render_devices)
        self._bridge.measurement_received.connect(self._handle_measurement)
        self._bridge.status_changed.connect(self._log)

        transport: Transport
        if simulate:
            transport = SimulatedTransport()
        else:
            transport = BleakTransport(chooser=self._choose_device, scan_timeout=scan_timeout)

        self._registry = DeviceRegistry()
        self._registry.subscribe(self._bridge.emit_devices)
        self._manager = DeviceManager(
            registry=self._registry,
            on_status=self._bridge.emit_status,
            on_measurement=self._bridge.emit_measurement,
        )
        self._gateway = DiscoveryGateway(transport=transport, registry=self._registry)

        self._row_ids: List[str] = []
        self._shown_actions: List[Tuple[str, ConnectionState]] = []
        self._history: Dict[str, MeasurementRingBuffer] = {}

        self._build_ui()
        self._plot_timer = QtCore.QTimer(self)
        self._plot_timer.setInterval(config.PLOT_REFRESH_MS)
        self._plot_timer.timeout.connect(self._refresh_plot)
        self._plot_timer.start()

        self._log("Simulation mode." if simulate else "Ready.")

    # ------------------------------------------------------------------ UI --
    def _build_ui(self) -> None:
        central = QtWidgets.QWidget(self)
        layout = QtWidgets.QVBoxLayout(central)

        title = QtWidgets.QLabel("Bluetooth Connection")
        title.setStyleSheet("font-size: 20px; font-weight: bold;")
        layout.addWidget(title, alignment=QtCore.Qt.AlignmentFlag.AlignHCenter)

        controls_layout = QtWidgets.QHBoxLayout()
        self._on_button = QtWidgets.QPushButton("On")
        self._on_button.setStyleSheet("background-color: #3B82F6; color: white;")
        self._on_button.clicked.connect(self._on_on_clicked)
        controls_layout.addWidget(self._on_button)

        self._off_button = QtWidgets.QPushButton("Off")
        self._off_button.setStyleSheet("background-color: #EF4444; color: white;")
        self._off_button.clicked.connect(self._on_off_clicked)
        controls_layout.addWidget(self._off_button)
        controls_layout.addStretch()
        layout.addLayout(controls_layout)

        self._table = QtWidgets.QTableWidget(0, len(COLUMNS))
        self._table.setHorizontalHeaderLabels(COLUMNS)
        self._table.horizontalHeader().setSectionResizeMode(
            QtWidgets.QHeaderView.ResizeMode.Stretch
        )
        self._table.verticalHeader().setVisible(False)
        self._table.setEditTriggers(QtWidgets.QAbstractItemView.EditTrigger.NoEditTriggers)
        self._table.setSelectionBehavior(
            QtWidgets.QAbstractItemView.SelectionBehavior.SelectRows
        )
        self._table.setSelectionMode(
            QtWidgets.QAbstractItemView.SelectionMode.SingleSelection
        )
        layout.addWidget(self._table)

        self._plot_widget = pg.PlotWidget()
        self._plot_widget.setBackground("#1a1a1a")
        self._plot_widget.showGrid(x=True, y=True, alpha=0.2)
        self._plot_widget.setLabel("left", "Measurement")
        self._plot_widget.setLabel("bottom", "Samples")
        self._plot_widget.setMinimumHeight(220)
        self._curve = self._plot_widget.plot(pen=pg.mkPen(color="#4CD964", width=2))
        layout.addWidget(self._plot_widget)

        self._log_view = QtWidgets.QPlainTextEdit()
        self._log_view.setReadOnly(True)
        self._log_view.setMaximumHeight(120)
        layout.addWidget(self._log_view)

        central.setLayout(layout)
        self.setCentralWidget(central)
        self.resize(900, 700)

    def _render_devices(self, snapshot: Tuple[DeviceRecord, ...]) -> None:
        selected = self._selected_device_id()
        stale = stale_action_rows(self._shown_actions, snapshot)
        self._row_ids = [record.id for record in snapshot]
        self._shown_actions = [(record.id, record.state) for record in snapshot]
        self._table.setRowCount(len(snapshot))
        for row, record in enumerate(snapshot):
            for column, text in enumerate(row_texts(record)):
                item = self._table.item(row, column)
                if item is None:
                    self._table.setItem(row, column, self._cell(text))
                elif item.text() != text:
                    item.setText(text)
        for row in stale:
            self._table.setCellWidget(row, 3, self._action_widget(snapshot[row]))
        if stale and selected in self._row_ids:
            self._table.selectRow(self._row_ids.index(selected))

        for device_id in list(self._history):
            if device_id not in self._row_ids:
                del self._history[device_id]

    @staticmethod
    def _cell(text: str) -> QtWidgets.QTableWidgetItem:
        item = QtWidgets.QTableWidgetItem(text)
        item.setTextAlignment(QtCore.Qt.AlignmentFlag.AlignCenter)
        return item

    def _action_widget(self, record: DeviceRecord) -> QtWidgets.QWidget:
        widget = QtWidgets.QWidget()
        layout = QtWidgets.QHBoxLayout(widget)
        layout.setContentsMargins(4, 0, 4, 0)
        device_id = record.id
        if record.state is ConnectionState.CONNECTED:
            layout.addWidget(QtWidgets.QLabel("Connected ✔️"))
            button = QtWidgets.QPushButton("Disconnect")
            button.setStyleSheet("background-color: #EF4444; color: white;")
            button.clicked.connect(lambda _=False: self._on_disconnect_clicked(device_id))
            layout.addWidget(button)
        elif record.state is ConnectionState.CONNECTING:
            layout.addWidget(QtWidgets.QLabel("Connecting ⏳"))
        else:
            button = QtWidgets.QPushButton("Connect")
            button.setStyleSheet("background-color: #22C55E; color: white;")
            button.clicked.connect(lambda _=False: self._on_connect_clicked(device_id))
            layout.addWidget(button)
        return widget

    # -------------------------------------------------------------- Helpers --
    def _selected_device_id(self) -> Optional[str]:
        row = self._table.currentRow()
        if 0 <= row < len(self._row_ids):
            return self._row_ids[row]
        return None

    def _log(self, message: str) -> None:
        self._log_view.appendPlainText(message)

    async def _choose_device(
        self, candidates: List[BleDeviceInfo]
    ) -> Optional[BleDeviceInfo]:
        if not candidates:
            self._log("No UWAVE devices found.")
            return None
        labels = [f"{info.name} ({info.address})" for info in candidates]
        label, ok = QtWidgets.QInputDialog.getItem(
            self, "Pair device", "Select a UWAVE sensor:", labels, 0, False
        )
        if not ok:
            return None
        return candidates[labels.index(label)]

    def _handle_measurement(self, device_id: str, value: float) -> None:
        buffer = self._history.get(device_id)
        if buffer is None:
            buffer = MeasurementRingBuffer(config.HISTORY_SECONDS * config.SAMPLE_RATE_HZ)
            self._history[device_id] = buffer
        buffer.append(value)

    def _refresh_plot(self) -> None:
        device_id = self._selected_device_id()
        if device_id is None and self._row_ids:
            device_id = self._row_ids[0]
        buffer = self._history.get(device_id) if device_id else None
        if buffer is None or len(buffer) == 0:
            self._curve.setData([], [])
            return
        data = buffer.snapshot()
        x = np.arange(-data.size + 1, 1)
        self._curve.setData(x, data)

    # ------------------------------------------------------------- Actions --
    @asyncSlot()
    async def _on_on_clicked(self) -> None:
        self._on_button.setEnabled(False)
        self._log("Requesting device...")
        try:
            record = await self._gateway.discover()
        except UserCancelled:
            self._log("Device selection cancelled.")
        except TransportError as exc:
            self._log(f"Error: {exc}")
        else:
            self._log(f"Found {record.name} ({record.id})")
        finally:
            self._on_button.setEnabled(True)

    @asyncSlot()
    async def _on_off_clicked(self) -> None:
        await self._manager.disconnect_all()
        self._history.clear()

    @asyncSlot(str)
    async def _on_connect_clicked(self, device_id: str) -> None:
        try:
            await self._manager.connect(device_id)
        except (ConnectionFailed, NotFound) as exc:
            self._log(f"Connection failed: {exc}")

    @asyncSlot(str)
    async def _on_disconnect_clicked(self, device_id: str) -> None:
        try:
            await self._manager.disconnect(device_id)
        except NotFound:
            logger.debug("%s already removed", device_id)
        self._history.pop(device_id, None)
