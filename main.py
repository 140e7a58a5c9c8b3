"""Entry point for the UWAVE monitor application."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from PyQt6 import QtWidgets
import qasync

from uwave_monitor import config
from uwave_monitor.ui.main_window import MainWindow


def parse_args(argv=None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Read measurements from UWAVE BLE sensors")
    p.add_argument("--simulate", action="store_true", help="Use simulated sensors instead of Bluetooth")
    p.add_argument("--scan-timeout", type=float, default=config.DEFAULT_SCAN_TIMEOUT, help="BLE scan duration in seconds")
    p.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return p.parse_args(argv)


def run() -> None:
    """Launch the Qt application."""
    args = parse_args()
    logging.basicConfig(
        level=args.log_level,
        format="%(asctime)s - %(levelname)s - [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
    )
    app = QtWidgets.QApplication(sys.argv[:1])
    loop = qasync.QEventLoop(app)
    asyncio.set_event_loop(loop)
    window = MainWindow(simulate=args.simulate, scan_timeout=args.scan_timeout)
    window.show()
    with loop:
        try:
            loop.run_forever()
        except KeyboardInterrupt:
            pass


if __name__ == "__main__":
    run()
