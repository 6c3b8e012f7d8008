"""
Delivery sinks

Each sink consults the idempotency oracle before committing its side effect:
- db.py - transactional insert into the messages table
- archive.py - fail-if-exists write into the processed-file archive
"""

from domains.file_relay.sinks.archive import FileSink
from domains.file_relay.sinks.db import DbSink

__all__ = ["DbSink", "FileSink"]
