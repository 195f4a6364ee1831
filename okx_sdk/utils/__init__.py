"""
Utility functions module.

Time helpers shared by request signing, the REST invoker and the
streaming session.

Time Semantics:
- Signing timestamps are wall-clock UTC with millisecond precision
- Timestamps are generated fresh for every request and login attempt
- Received-at times on inbound messages are wall-clock UTC
"""
