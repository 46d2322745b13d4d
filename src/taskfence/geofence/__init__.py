"""
Geofence subsystem.

Components:
- geo_models.py: Coordinate and NamedLocation
- distance.py: great-circle (Haversine) distance and the proximity test
- location_store.py: JSON-file storage for saved locations
- position_sources.py: manual, polling (CSV replay) and unsupported position sources
- notifications.py: notification sinks with permission handling
- monitor.py: edge-triggered arrival/departure detection
"""
