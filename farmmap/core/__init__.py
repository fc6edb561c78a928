# FarmParcelMap Core Module
"""
Core business logic module for FarmParcelMap.

Contains:
- Coordinate and ring normalization
- Pure parcel geometry predicates (containment, overlap)
- In-memory farm state (boundary and parcel rings)
- Error taxonomy shared by controllers and widgets
"""
