"""
FastAPI backend for EdgeFinder.

Provides REST API endpoints for:
- Edge discovery
- Per-event consensus pricing
- Line movement alerts
- Kelly bet sizing
- Manual refresh and scheduler control
"""
