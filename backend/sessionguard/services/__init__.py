"""Service layer.

Packages
--------
- ``sessionguard.services._shared``: base service, errors, deadline and ports
  (hexagonal interfaces) with their in-memory doubles.
- ``sessionguard.services.sessions``: refresh-token issuance, rotation,
  revocation, expiry reaping and the session use cases built on them.

Import concrete classes from their modules; this package deliberately keeps
no re-exports so that ``sessionguard.core`` can depend on ``_shared.errors``
without importing the whole service graph.
"""
