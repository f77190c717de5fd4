"""
Dispute Case Workspace Service
==============================

Back-office workspace for dispute cases raised against a service provider:
1. Case lifecycle with globally unique, human-shareable case numbers
2. Tasks, notes and evidence attached to each case
3. Workspace metrics computed fresh on every read

No HTTP layer, no auth decisioning: callers pass an already-resolved owner id.
"""

__version__ = "1.0.0"
