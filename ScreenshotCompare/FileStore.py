import logging
import os
import shutil

from ScreenshotCompare.exceptions import PersistenceError

LOG = logging.getLogger(__name__)


class FileStore:
    """Local filesystem persistence for reference, screenshot and diff images.

    Every ``OSError`` is raised as ``PersistenceError`` so callers only have to
    deal with one failure type per concern.
    """

    def exists(self, path) -> bool:
        return os.path.isfile(path)

    def copy(self, source, destination):
        """Copy ``source`` to ``destination``, overwriting an existing file."""
        try:
            self._ensure_parent(destination)
            shutil.copyfile(source, destination)
        except OSError as err:
            raise PersistenceError(
                str(destination), f"Could not copy '{source}' to '{destination}': {err}"
            ) from err
        LOG.debug(f"Copied {source} to {destination}")

    def write_bytes(self, path, data: bytes):
        try:
            self._ensure_parent(path)
            with open(path, "wb") as f:
                f.write(data)
        except OSError as err:
            raise PersistenceError(str(path), f"Could not write '{path}': {err}") from err
        LOG.debug(f"Wrote {len(data)} bytes to {path}")

    def remove(self, path):
        """Delete ``path``. A missing file is not an error."""
        try:
            os.remove(path)
        except FileNotFoundError:
            return
        except OSError as err:
            raise PersistenceError(str(path), f"Could not remove '{path}': {err}") from err
        LOG.debug(f"Removed {path}")

    @staticmethod
    def _ensure_parent(path):
        directory = os.path.dirname(os.fspath(path))
        if directory:
            os.makedirs(directory, exist_ok=True)
