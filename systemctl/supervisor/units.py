import os
import logging
import configparser
from enum import Enum
from pathlib import Path
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from systemctl.config import effective_settings as config
from .errors import ConfigInvalidError, NotFoundError

log = logging.getLogger(__name__)

VARIABLE_SIGIL = "$"


class RestartPolicy(Enum):
    """The `Restart=` setting of a unit. Unknown values behave as NEVER."""

    ALWAYS = "always"
    ON_FAILURE = "on-failure"
    NEVER = "no"

    @classmethod
    def from_string(cls, value: Optional[str]) -> "RestartPolicy":
        if value == "always":
            return cls.ALWAYS
        if value == "on-failure":
            return cls.ON_FAILURE
        return cls.NEVER


@dataclass(frozen=True)
class ServiceDefinition:
    """Everything needed to launch one service, read from its unit file."""

    name: str
    path: Path
    executable: str
    arguments: List[str] = field(default_factory=list)
    working_directory: str = "/"
    restart_policy: RestartPolicy = RestartPolicy.NEVER

    @property
    def argv(self) -> List[str]:
        return [self.executable, *self.arguments]


COMMENT_PREFIXES = ("#", ";")


class _FirstValueDict(dict):
    """Option storage in which the first of several repeated keys wins."""

    def __setitem__(self, key, value):
        # configparser stores each freshly read value as a list, joined into a string later.
        if isinstance(value, list) and key in self:
            return
        super().__setitem__(key, value)


def join_continuation_lines(text: str) -> str:
    """
    Folds lines ending in a backslash into the next line, the backslash
    becoming a space. Comment lines inside a continued value are skipped.
    Leading whitespace is not significant in unit files and is stripped.
    """
    lines: List[str] = []
    pending: Optional[str] = None
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if pending is not None:
            if line.startswith(COMMENT_PREFIXES):
                continue
            line = f"{pending} {line}"
            pending = None
        if line.endswith("\\") and not line.startswith(COMMENT_PREFIXES):
            pending = line[:-1]
            continue
        lines.append(line)
    if pending is not None:
        lines.append(pending)
    return "\n".join(lines) + "\n"


class UnitFile:
    """
    Read-only view of a parsed unit file.

    The supervisor only ever asks for single options, so this is the whole
    surface it depends on; the INI parsing itself is left to configparser.
    When a key is repeated within a section, the first value is the one reported.
    """

    def __init__(self, parser: configparser.ConfigParser) -> None:
        self._parser = parser

    @classmethod
    def parse(cls, text: str, source: str = "<unit>") -> "UnitFile":
        """
        Deserializes unit file text.

        :param text: Raw unit file content.
        :param source: Name used in error messages.
        :raises ConfigInvalidError: If the text is not a valid unit file.
        """
        # Unit files repeat keys and use '%' specifiers freely.
        parser = configparser.ConfigParser(
            strict=False, interpolation=None, delimiters=("=",),
            comment_prefixes=COMMENT_PREFIXES, dict_type=_FirstValueDict,
        )
        parser.optionxform = str
        try:
            parser.read_string(join_continuation_lines(text), source=source)
        except configparser.Error as e:
            raise ConfigInvalidError(f"failed to parse service file: {e}") from e
        return cls(parser)

    def get_option(self, section: str, key: str) -> Optional[str]:
        """Returns the raw value of `section.key`, or None if it is absent."""
        if not self._parser.has_section(section):
            return None
        return self._parser.get(section, key, fallback=None)


def unit_filename(name: str) -> str:
    return f"{name}{config.UNIT_SUFFIX}"


def resolve(name: str, search_dirs: Optional[Iterable[Path]] = None) -> Optional[Path]:
    """
    Finds the unit file for a service.

    The user unit directory is searched before the system one; the first
    `<name>.service` that exists wins.

    :param name: Service name without suffix.
    :param search_dirs: Directories to search, in order.
    :return: The unit file path, or None if the service is unknown.
    """
    if search_dirs is None:
        search_dirs = (config.USER_UNIT_DIR, config.SYSTEM_UNIT_DIR)
    for directory in search_dirs:
        candidate = Path(directory) / unit_filename(name)
        if candidate.is_file():
            return candidate
    return None


def _variable_name(token: str) -> str:
    """`$NAME` and `${NAME}` both name NAME; anything after the sigil is the name."""
    name = token[len(VARIABLE_SIGIL):]
    if name.startswith("{") and name.endswith("}"):
        name = name[1:-1]
    return name


def expand_command(command: str, environ=None) -> List[str]:
    """
    Splits an ExecStart line on whitespace and substitutes `$VAR` / `${VAR}`.

    Every token starting with `$` is a variable reference and is replaced by
    the variable's value, or dropped when the variable is unset or empty; it
    is never passed on literally. There is no quoting support, so an argument
    can never contain a space.
    """
    environ = os.environ if environ is None else environ
    tokens: List[str] = []
    for token in command.split():
        if not token.startswith(VARIABLE_SIGIL):
            tokens.append(token)
            continue
        value = environ.get(_variable_name(token), "")
        if value:
            tokens.append(value)
        else:
            log.debug(f"Dropping '{token}' from command line: variable is unset or empty")
    return tokens


def load(name: str, path: Path, default_working_dir: Optional[str] = None) -> ServiceDefinition:
    """
    Reads a unit file and builds the definition used to launch the service.

    :param name: Service name without suffix.
    :param path: Resolved unit file path.
    :param default_working_dir: Used when the unit sets no WorkingDirectory.
    :raises NotFoundError: If the unit has no ExecStart option.
    :raises ConfigInvalidError: If the file is unreadable, unparsable or ExecStart is empty.
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigInvalidError(f"failed to read service file: {e}") from e

    unit = UnitFile.parse(text, source=str(path))

    exec_start = unit.get_option("Service", "ExecStart")
    if exec_start is None:
        raise NotFoundError("option Service.ExecStart not found")
    argv = expand_command(exec_start)
    if not argv:
        raise ConfigInvalidError("ExecStart not found")

    working_directory = unit.get_option("Service", "WorkingDirectory")
    if not working_directory:
        working_directory = default_working_dir or config.DEFAULT_WORKING_DIR

    definition = ServiceDefinition(
        name=name,
        path=Path(path),
        executable=argv[0],
        arguments=argv[1:],
        working_directory=working_directory,
        restart_policy=RestartPolicy.from_string(unit.get_option("Service", "Restart")),
    )
    log.debug(f"Loaded definition for '{name}' from {path}: {definition.argv}")
    return definition
