"""
Feature modules live under this package.

Each module owns its models, service logic and API blueprint (admin.py), while reusing
platform primitives (auth, RBAC, audit, storage, mailer, DB session).
Every query is scoped to the signed-in user's organization.
"""
