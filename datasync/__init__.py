"""Datasync — optimistic, cache-first synchronization of entity collections."""
