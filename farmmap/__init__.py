# FarmParcelMap - Source Package
"""
FarmParcelMap: farm boundary and parcel drawing on an interactive map.

This package provides a PySide6-based GUI for:
- Drawing a farm boundary and nested crop/livestock parcels
- Validating parcel containment and overlap before commit
- Read-only display of committed farm geometry
- Clustered overview of many farm locations
"""

__version__ = "0.1.0"
