"""
Storage abstractions for the plakait runtime.

Includes:
- SessionStore: in-memory session map with per-session locking and expiry
- AsyncReadWriteLock: the reader/writer lock guarding that map
"""
