# Document collection: users
# This file documents the expected document shape
# Actual operations are handled via the DocumentStore in service.py
# Authentication is handled by Supabase Auth (auth.users table)

"""
Expected document structure (collection "users", document id = auth user id):

- email: text (not null)
- name: text (not null) - defaults to the local part of the email
- phone: text (default: "")
- group_id: text (nullable) - the single group the user belongs to or is pending in
- role: text (default: "Member") - values: Admin, Manager, Musician, Member;
  meaningful only within group_id

Note: Documents written by older clients may miss fields or carry unknown
roles. Reads repair them field by field (see decode_user in service.py).
"""
