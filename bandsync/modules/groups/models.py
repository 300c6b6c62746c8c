# Document collection: groups
# This file documents the expected document shape
# Actual operations are handled via the DocumentStore in service.py

"""
Expected groups document (stored in the groups table's data column):

- name: string (not null)
- code: string, 6 uppercase characters, unique across groups
- members: list of user ids (active members)
- pending_members: list of user ids (join requests awaiting approval)
  A user id is never in both lists.
- settings:
    allow_members_to_invite: bool (default true)
    allow_members_to_create_events: bool (default true)
    allow_members_to_create_setlists: bool (default true)
    allow_guest_access: bool (default false)
    enable_notifications: bool (default true)
    enabled_modules: list of module ids (default: every module)
- created_at: ISO timestamp
- updated_at: ISO timestamp (nullable), bumped by every membership change

The member's role lives on the users document (role, group_id), not here.
"""
