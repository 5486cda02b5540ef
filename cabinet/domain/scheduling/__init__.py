"""
Scheduling domain - appointment booking engine.

- time_grid.py: grid coordinates and durations
- conflicts.py: overlap detection
- repository.py: storage contract and SQLAlchemy adapter
- service.py: booking, rescheduling, status changes, range queries
- calendar_view.py: per-session navigation state and window cache
- router.py: HTTP endpoints
"""
