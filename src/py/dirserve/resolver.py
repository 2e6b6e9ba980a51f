import errno
import os
import re
import stat
from enum import Enum
from pathlib import Path
from typing import NamedTuple
from urllib.parse import unquote_to_bytes

from .http.model import HTTPRequestError

# --
# # Resolver
#
# Maps the path of a request URL to a location under the root directory,
# and tells what is there.

RE_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")
RE_TRAILING_SLASHES = re.compile(r"/+$")


class PathKind(Enum):
	Missing = 0
	Directory = 1
	File = 2


class RequestContext(NamedTuple):
	urlPath: str
	resolvedPath: Path
	kind: PathKind
	stat: os.stat_result | None = None


def decodePath(path: str) -> str:
	"""Decodes the percent-encoded URL path as UTF-8, rejecting malformed
	escapes rather than passing them through."""
	if RE_BAD_ESCAPE.search(path):
		raise HTTPRequestError(f"Malformed URL path: {path}", 400)
	try:
		return unquote_to_bytes(path).decode("utf-8")
	except UnicodeDecodeError:
		raise HTTPRequestError(f"URL path is not valid UTF-8: {path}", 400)


def resolve(root: Path, path: str) -> RequestContext:
	"""Resolves the raw URL `path` against the `root` directory."""
	url_path: str = RE_TRAILING_SLASHES.sub("/", decodePath(path or "/"))
	if "\x00" in url_path:
		raise HTTPRequestError(f"URL path contains a null byte: {path!r}", 400)
	# NOTE: We keep the trailing slash in the joined path, so that a file
	# requested as a directory is reported as missing.
	joined: str = os.path.join(root, url_path[1:] if url_path.startswith("/") else url_path)
	local_path: Path = Path(os.path.normpath(joined))
	if not local_path.is_relative_to(root):
		raise HTTPRequestError(f"Path is outside of the root directory: {url_path}", 403)
	try:
		st = os.stat(joined)
	except (FileNotFoundError, NotADirectoryError):
		return RequestContext(url_path, local_path, PathKind.Missing)
	except OSError as e:
		# Names too long, loops in symlinks, etc. are just as missing
		if e.errno in (errno.ENAMETOOLONG, errno.ELOOP):
			return RequestContext(url_path, local_path, PathKind.Missing)
		raise
	return RequestContext(
		url_path,
		local_path,
		PathKind.Directory if stat.S_ISDIR(st.st_mode) else PathKind.File,
		st,
	)


# EOF
