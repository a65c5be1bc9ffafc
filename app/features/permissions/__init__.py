"""
Permission management feature module.

Implements capability-based access control: features are granted to roles
with read/write/admin flags, a user's roles resolve to an access profile,
and that profile is checked against per-operation requirements.
"""
