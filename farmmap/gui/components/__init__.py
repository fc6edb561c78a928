# FarmParcelMap GUI Components
"""
Reusable GUI components for FarmParcelMap.

Components:
- MapCanvas: Degree-space map view with polygon, point and marker layers
- PolygonDrawingTool: Click-to-draw polygon tool with editable overlay
- MapComponent: Lazily loaded map with status bar and retry page
- BaseInterface / TabInterface: Toolbar and side panel page layout
"""
