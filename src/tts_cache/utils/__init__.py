"""
Utility Modules for tts-cache.

    - timeit.py: Performance measurement utilities
"""
