"""
ExpenseFlow - State Sync Package

The data layer behind a personal and family expense tracker: an
immutable state container, a sync orchestrator that rebuilds it on every
sign-in or sign-out, a store adapter over Firestore with a local
fallback, and family sharing through invitations.

DESIGN PRINCIPLES:
1. The state container is the only thing the UI reads
2. Remote writes succeed before the container changes
3. Every write and every tolerated failure is auditable
4. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "ExpenseFlow Team"
