"""PySide6 / qfluentwidgets front end for FarmParcelMap."""
