import math
import os
from dataclasses import dataclass
from pathlib import Path

PORT: int = 8000

# The server is meant for local use, but is reachable from the local network
# like `python -m http.server` would be.
HOST: str = "0.0.0.0"  # nosec: B104

# Files strictly larger than that advertise and honor byte ranges
RANGE_MIN_SIZE: int = 3 * 2**20

CACHE_CONTROL: str = "public, max-age=3600"
CACHE_CONTROL_STREAM: str = "no-transform"


class ConfigurationError(ValueError):
	"""Raised when the server configuration is invalid."""


def parsePort(value: str | int | float | None, default: int = PORT) -> int:
	"""Parses the port given on the command line, falling back to `default`
	when it is not a finite number."""
	if value is None or isinstance(value, bool):
		return default
	try:
		number = float(value)
	except (TypeError, ValueError):
		return default
	if not math.isfinite(number) or number != int(number) or number < 0:
		return default
	return int(number)


def normalizeDirectory(directory: str | None, cwd: str | Path | None = None) -> Path:
	"""Resolves the directory given on the command line against `cwd`. When
	the directory does not exist, PowerShell backtick escapes of square
	brackets are undone before giving up."""
	base: Path = Path(cwd or os.getcwd())
	if not directory:
		return base.absolute()
	# Windows shells may leave a trailing quote when the path ends with `\`
	directory = directory.removesuffix('"')
	path = Path(os.path.normpath(base / directory))
	if not path.exists():
		unescaped = str(path).replace("`[", "[").replace("`]", "]")
		path = Path(unescaped)
		if not path.exists():
			raise ConfigurationError(f"Directory doesn't exist: {path}")
	return path


@dataclass(slots=True, frozen=True)
class ServerConfig:
	"""The configuration of the server, immutable once created."""

	root: Path
	port: int = PORT
	host: str = HOST

	@staticmethod
	def Make(
		port: str | int | None = None,
		directory: str | None = None,
		*,
		host: str = HOST,
		cwd: str | Path | None = None,
	) -> "ServerConfig":
		root = normalizeDirectory(directory, cwd)
		if not root.is_dir():
			raise ConfigurationError(f"Not a directory: {root}")
		return ServerConfig(root=root, port=parsePort(port), host=host)


# EOF
