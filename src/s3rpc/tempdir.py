"""Private local directory for downloaded request and response files."""
import logging
import os
import shutil
import tempfile
import threading
from typing import Optional

from s3rpc.correlation import basename

logger = logging.getLogger(__name__)


class TempDir:
    """A temporary directory owned by one Client or Server.

    The directory is created on construction and removed by the first call
    to `close()`. Later calls do nothing, so `close()` is safe to call from
    several places and threads.
    """

    def __init__(self, prefix: str):
        self.prefix = prefix
        self.path: Optional[str] = None
        self._lock = threading.Lock()
        self._closed = False
        self.open()

    def open(self) -> str:
        if self.path is None:
            self.path = tempfile.mkdtemp(prefix=self.prefix)
            logger.debug(f"Created temp directory {self.path}")
        return self.path

    @property
    def closed(self) -> bool:
        return self._closed

    def new_file(self, name: str) -> str:
        """Create an empty private file named `<random>_<basename of name>`."""
        if self._closed:
            raise RuntimeError(f"temp directory {self.path} is closed")
        fd, path = tempfile.mkstemp(suffix="_" + basename(name), dir=self.path)
        os.close(fd)
        return path

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        # Errors are raised once; the directory is never touched again.
        shutil.rmtree(self.path)
        logger.debug(f"Removed temp directory {self.path}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
