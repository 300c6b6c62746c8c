# Document collection: permissions
# This file documents the expected document shape
# Actual operations are handled via the DocumentStore in service.py

"""
Expected document structure (collection "permissions", one document per group;
documents created by this service use the group id as document id):

- group_id: text (not null)
- modules: list of
    - module_id: text - values: admin, calendar, setlists, tasks, chats,
      finances, merchandise, contacts
    - role_access: list of text - roles allowed to open the module;
      an empty list means the module is disabled for everyone but admins

Modules missing from the list fall back to DEFAULT_MODULE_ROLES
(config/permissions_config.py). The admin module is always restricted to
the Admin role.
"""
