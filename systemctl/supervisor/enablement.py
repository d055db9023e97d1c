import os
import logging
from pathlib import Path
from typing import Iterable, List, Optional

from systemctl.config import effective_settings as config
from .errors import NotFoundError, SupervisorError
from .units import unit_filename

log = logging.getLogger(__name__)


class EnablementStore:
    """
    Which services start at daemon boot, kept as symlinks
    `<directory>/<name>.service -> <unit file>`.
    """

    def __init__(self, directory: Optional[Path] = None, reserved: Optional[Iterable[str]] = None) -> None:
        self.directory = Path(directory or config.ENABLE_DIR)
        self.reserved = set(config.RESERVED_UNITS if reserved is None else reserved)

    def link_path(self, name: str) -> Path:
        return self.directory / unit_filename(name)

    def is_enabled(self, name: str) -> bool:
        return self.link_path(name).is_symlink()

    def enable(self, name: str, unit_path: Path) -> None:
        """
        Links the unit into the enablement directory.

        :raises SupervisorError: If the link cannot be created, e.g. because the
            service is already enabled.
        """
        link = self.link_path(name)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            link.symlink_to(unit_path)
        except OSError as e:
            raise SupervisorError(f"symlink {unit_path} {link}: {e.strerror}") from e
        log.info(f"Created symlink {link} -> {unit_path}")

    def disable(self, name: str) -> None:
        """
        Removes the service's link.

        :raises NotFoundError: If the service is not enabled.
        """
        link = self.link_path(name)
        try:
            link.unlink()
        except FileNotFoundError as e:
            raise NotFoundError(f"service {name} is not enabled") from e
        log.info(f"Removed {link}")

    def enabled_services(self) -> List[str]:
        """
        Lists the services to start at boot, in name order.

        The directory tree is walked like the wants directory of a real
        service manager; reserved units are skipped.
        """
        if not self.directory.is_dir():
            log.warning(f"Enablement directory {self.directory} does not exist. Nothing to start.")
            return []

        names = []
        suffix = config.UNIT_SUFFIX
        for _, _, filenames in os.walk(self.directory):
            for filename in filenames:
                if not filename.endswith(suffix) or filename in self.reserved:
                    continue
                names.append(filename[:-len(suffix)])
        return sorted(names)
