import mimetypes
import os
import re
from pathlib import Path
from typing import NamedTuple

# NOTE: A dedicated instance only knows about Python's built-in table, unlike
# the module-level functions that also read the host's `mime.types` files.
MIME_DB: mimetypes.MimeTypes = mimetypes.MimeTypes()

# Extensions whose type differs between Python versions or is missing from
# the built-in table. Keys are lowercase extensions without the dot.
MIME_TYPES: dict[str, str] = dict(
	bz2="application/x-bzip",
	gz="application/x-gzip",
	js="application/javascript",
	mjs="application/javascript",
	json="application/json",
	map="application/json",
	md="text/markdown",
	markdown="text/markdown",
	ts="video/mp2t",
	wasm="application/wasm",
	webp="image/webp",
	woff="font/woff",
	woff2="font/woff2",
	yaml="text/yaml",
	yml="text/yaml",
)

TEXT: str = "text/plain; charset=utf-8"
STREAM: str = "application/octet-stream"
TYPESCRIPT: str = "application/typescript"

# `.ts` files at least that big are most likely MPEG transport streams
TYPESCRIPT_MAX_SIZE: int = 2**20

RE_LICENSE = re.compile(r"^license$", re.IGNORECASE)
RE_BARE_TEXT = re.compile(r"^text/[^; ]+$")


def lookup(path: Path | str, default: str = STREAM) -> str:
	"""Looks up the MIME type registered for the extension of `path`."""
	ext: str = os.path.splitext(str(path))[1][1:].lower()
	if not ext:
		return default
	elif res := MIME_TYPES.get(ext):
		return res
	else:
		return MIME_DB.types_map[True].get(f".{ext}") or default


def contentType(path: Path | str) -> str:
	"""Returns the content type to report for the file at `path`, with
	a UTF-8 charset for textual types."""
	p: str = str(path)
	name, ext = os.path.splitext(os.path.basename(p))
	if name == ".editorconfig":
		return TEXT
	elif not ext:
		return TEXT if RE_LICENSE.match(name) else STREAM
	elif p.endswith(".ts"):
		if p.endswith(".d.ts"):
			return TYPESCRIPT
		try:
			size: int = os.stat(p).st_size
		except FileNotFoundError:
			return TYPESCRIPT
		return lookup(p) if size >= TYPESCRIPT_MAX_SIZE else TYPESCRIPT
	suggested: str = lookup(p)
	if p.endswith(".js"):
		return f"{suggested}; charset=utf-8"
	elif RE_BARE_TEXT.match(suggested):
		return f"{suggested}; charset=utf-8"
	else:
		return suggested


class DirectoryEntry(NamedTuple):
	name: str
	isDirectory: bool

	@property
	def label(self) -> str:
		"""The displayed name, where directories end with a `/`."""
		return f"{self.name}/" if self.isDirectory else self.name


class DirectoryListing(NamedTuple):
	"""The direct children of a directory, in the order the filesystem
	enumerates them."""

	displayPath: str
	entries: list[DirectoryEntry]

	@staticmethod
	def Read(path: Path | str, displayPath: str) -> "DirectoryListing":
		with os.scandir(path) as children:
			# NOTE: `is_dir` follows symlinks, a broken link is a file
			return DirectoryListing(
				displayPath,
				[DirectoryEntry(_.name, _.is_dir()) for _ in children],
			)

	@property
	def labels(self) -> list[str]:
		return [_.label for _ in self.entries]


# EOF
