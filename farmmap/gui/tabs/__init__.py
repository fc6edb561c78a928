# FarmParcelMap Tab Modules
"""
Tab modules for the FarmParcelMap window.

Tabs:
- ParcelEditor: Draw the farm boundary and parcel rings
- FarmOverview: Clustered farm markers with a details panel
- Settings: Theme, language, map and clustering options
"""
