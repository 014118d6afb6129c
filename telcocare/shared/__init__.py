"""
Shared Kernel Module
====================

Generic infrastructure used by the triage bounded context and the
application shell: structured logging and HTTP middleware.

DO NOT add triage business logic to the shared kernel.
"""

__version__ = "1.0.0"
