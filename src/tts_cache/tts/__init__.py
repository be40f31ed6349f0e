"""
Cache, Sequencing and Generation Components.

    - keys.py: Fingerprints and artifact size estimation
    - cache.py: In-memory artifact cache with LRU eviction
    - sequencer.py: Per-session ordering barrier and session defaults
    - driver.py: Generation calls with timeout, result type, error codes
"""
