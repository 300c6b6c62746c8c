# Document collection: events
# This file documents the expected document shape
# Actual operations are handled via the DocumentStore in service.py

"""
Expected events document:

- title: string (not null)
- date: ISO timestamp (UTC)
- type: concert | rehearsal | meeting | recording | other
- location: string (nullable)
- notes: string (nullable)
- group_id: id of the owning group
- created_by: user id (nullable)
- created_at / updated_at: ISO timestamps

Each event owns up to two scheduled notifications, identified by
event_day_before_<event id> and event_hour_before_<event id>.
"""
