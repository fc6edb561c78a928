#!/usr/bin/env python
"""
FarmParcelMap - farm boundary and parcel drawing GUI.

Main entry point for the application.

Usage
-----
    python main.py [farms.json]
"""

import json
import sys
from pathlib import Path


def load_farms(farms_path: Path):
    """
    Read the farm records passed on the command line.

    Returns
    -------
    list or None
        Farm records, or None when the file cannot be read as a JSON list.
        The failure is logged and the app starts with no farms.
    """
    from loguru import logger

    try:
        with open(farms_path, "r", encoding="utf-8") as f:
            farms = json.load(f)
    except (OSError, ValueError) as e:
        logger.error(f"Failed to read farms from {farms_path}: {e}")
        return None
    if not isinstance(farms, list):
        logger.error(f"Farms file must hold a JSON list: {farms_path}")
        return None
    logger.info(f"Loaded {len(farms)} farms from {farms_path.name}")
    return farms


def main() -> int:
    """
    Main entry point for FarmParcelMap.

    Returns
    -------
    int
        Exit code (0 for success, non-zero for error).
    """
    from loguru import logger
    from PySide6.QtWidgets import QApplication

    # Configure logging
    logger.remove()
    logger.add(
        sys.stderr,
        format="<green>{time:HH:mm:ss}</green> | "
               "<level>{level: <8}</level> | "
               "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
               "<level>{message}</level>",
        level="DEBUG"
    )

    logger.info("Starting FarmParcelMap...")

    farms = None
    if len(sys.argv) > 1:
        farms = load_farms(Path(sys.argv[1]))

    # Create application
    app = QApplication(sys.argv)
    app.setApplicationName("FarmParcelMap")
    app.setApplicationVersion("0.1.0")

    # Set application style
    app.setStyle("Fusion")

    # Import and create main window
    from farmmap.gui.main_window import MainWindow

    window = MainWindow(farms=farms)
    window.show()

    logger.info("Application started successfully")

    # Run event loop
    exit_code = app.exec()

    logger.info(f"Application exited with code: {exit_code}")
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
