"""
Test suite for the synchronization system.

Covers the event models, the SyncEngine batch protocol, the registry
consistency validator and the watchdog-based SourceTreeWatcher.
"""
