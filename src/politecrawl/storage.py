"""
Asynchronous, ordered, single-writer page storage.

Workers hand records to store_async() and move on. One writer task owns the
output file, drains the queue in order and writes one delimited record at a
time, so records from concurrent producers never interleave.

Record format:

    ##### <url> # <timestamp_ms> #####
    <content>
    <blank line>
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Union

import aiofiles

from .config import FILE_ENCODING, STORAGE_STOP_TIMEOUT
from .errors import StorageUnavailableError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PageRecord:
    url: str
    timestamp_ms: int
    content: str

    def render(self) -> str:
        return f"##### {self.url} # {self.timestamp_ms} #####\n{self.content}\n\n"


# Queued by stop(); everything queued before it is still written.
_CLOSE = object()


class StorageSink:
    def __init__(
        self,
        output_path: Union[str, Path],
        encoding: str = FILE_ENCODING,
        clock: Callable[[], float] = time.time,
    ):
        self.output_path = Path(output_path)
        self.encoding = encoding
        self._clock = clock
        self._queue: asyncio.Queue = asyncio.Queue()
        self._writer_task: Optional[asyncio.Task] = None
        self._closed = False
        self.records_queued = 0
        self.records_written = 0
        self.write_errors = 0

    async def start(self):
        """Open the output file for appending and launch the writer task."""
        if self._writer_task is not None:
            return
        try:
            self.output_path.parent.mkdir(parents=True, exist_ok=True)
            handle = await aiofiles.open(self.output_path, mode="a", encoding=self.encoding)
        except OSError as e:
            raise StorageUnavailableError(f"Cannot open {self.output_path} for writing: {e}") from e
        self._writer_task = asyncio.create_task(self._writer_loop(handle), name="storage-writer")

    def store_async(self, url: str, content: str) -> bool:
        """Queue a page for writing. Never blocks. False if the sink is closed."""
        if self._closed:
            logger.warning("Storage is closed, dropping %s", url)
            return False
        record = PageRecord(url=url, timestamp_ms=int(self._clock() * 1000), content=content)
        self._queue.put_nowait(record)
        self.records_queued += 1
        return True

    async def _writer_loop(self, handle):
        try:
            while True:
                record = await self._queue.get()
                if record is _CLOSE:
                    break
                try:
                    await handle.write(record.render())
                    await handle.flush()
                    self.records_written += 1
                except OSError as e:
                    self.write_errors += 1
                    logger.error("Failed to write %s to %s: %s", record.url, self.output_path, e)
        finally:
            await handle.close()

    async def stop(self, timeout: float = STORAGE_STOP_TIMEOUT):
        """Drain queued records, then close the file. Waits at most `timeout` seconds."""
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(_CLOSE)

        task = self._writer_task
        if task is None:
            return

        done, _ = await asyncio.wait({task}, timeout=timeout)
        if not done:
            logger.warning("Storage writer did not finish within %.1fs, %d records unwritten",
                           timeout, self.pending())
            task.cancel()
            await asyncio.wait({task})
        elif not task.cancelled() and task.exception() is not None:
            logger.error("Storage writer failed: %r", task.exception())

    def pending(self) -> int:
        """Records queued but not yet written."""
        return self.records_queued - self.records_written - self.write_errors

    @property
    def closed(self) -> bool:
        return self._closed
