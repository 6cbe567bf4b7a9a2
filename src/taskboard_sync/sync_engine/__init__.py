"""Task mutation and synchronization engine.

Diffing drafts into patches, resolving drag gestures, debounced auto-save,
bulk edits and reconciliation of server results into the board's task
collection. Nothing in here renders anything or knows about HTTP.
"""
