#!/usr/bin/env python3
"""
Source directory watcher for the File Relay domain.

Feeds newly visible files in the source directory to the ingestion pipeline.
Uses watchdog library for cross-platform file system event monitoring.
"""

import signal
import sys
import threading

from loguru import logger
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer


class RelayEventHandler(FileSystemEventHandler):
    """Submits created, written and moved-in files to the pipeline."""

    def __init__(self, pipeline):
        """
        Initialize event handler.

        Args:
            pipeline: IngestionPipeline instance
        """
        super().__init__()
        self.pipeline = pipeline

    def _submit(self, path: str):
        try:
            self.pipeline.submit(path)
        except Exception as e:
            # Keep the observer thread alive; the file stays put for the next scan
            logger.exception(f"Failed to submit {path}: {e}")

    def on_created(self, event: FileSystemEvent):
        """Handle file creation."""
        if event.is_directory:
            return

        logger.debug(f"Created: {event.src_path}")
        self._submit(event.src_path)

    def on_modified(self, event: FileSystemEvent):
        """Handle file modification (writers that create then fill)."""
        # Skip directory modifications (too noisy)
        if event.is_directory:
            return

        self._submit(event.src_path)

    def on_closed(self, event: FileSystemEvent):
        """Handle close-after-write (inotify only)."""
        if event.is_directory:
            return

        self._submit(event.src_path)

    def on_moved(self, event: FileSystemEvent):
        """Handle files renamed into the source directory."""
        if event.is_directory:
            return

        logger.debug(f"Moved: {event.src_path} -> {event.dest_path}")
        self._submit(event.dest_path)


def create_observer(pipeline) -> Observer:
    """Build an observer watching the pipeline's source directory (non-recursive)."""
    observer = Observer()
    observer.schedule(RelayEventHandler(pipeline), str(pipeline.source_dir), recursive=False)
    observer.daemon = True
    return observer


def main():
    """Main entry point."""
    from app.utils.config import get_settings
    from domains.file_relay.factory import build_pipeline

    settings = get_settings()

    logger.remove()
    logger.add(sys.stdout, level=settings.log_level.upper())
    logger.info("File Relay - Source Directory Watcher")

    stop_event = threading.Event()

    def _signal_handler(signum, frame):
        logger.info(f"Received signal {signum}, shutting down.")
        stop_event.set()

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    try:
        pipeline = build_pipeline(settings)
        try:
            pipeline.run(stop_event)
        finally:
            pipeline.dispatcher.close()

    except KeyboardInterrupt:
        logger.info("Watcher stopped by user")
    except Exception as e:
        logger.error(f"Watcher failed: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
