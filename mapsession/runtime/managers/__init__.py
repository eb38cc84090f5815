"""Operation managers for the session runtime.

Managers accept an explicit store (and host toolkit where a map is
touched) and raise domain exceptions from ``mapsession.runtime.errors``;
translating those for a UI or CLI is the caller's responsibility.
"""
