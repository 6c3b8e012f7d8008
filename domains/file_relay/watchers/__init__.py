"""
Source Directory Watchers

- filesystem.py - watchdog observer feeding the ingestion pipeline
"""
