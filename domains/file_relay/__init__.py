"""
File Relay Domain

Ingests JSON records dropped into a source directory and replicates each one
to two independent sinks:
- Relational store -> one row per record id
- Processed-file archive -> <id>.txt holding the message

Every sink checks for an existing copy before writing, so reprocessing a
quarantined file is always safe.
"""

__all__ = ["codec", "dispatcher", "errors", "factory", "models", "oracle", "pipeline", "sinks", "watchers"]
