import errno
import os
import posixpath
import stat
from email.utils import formatdate
from pathlib import Path
from urllib.parse import quote

from ..config import (
	CACHE_CONTROL,
	CACHE_CONTROL_STREAM,
	RANGE_MIN_SIZE,
	ServerConfig,
)
from ..http.model import (
	HTTPBodyFile,
	HTTPRequest,
	HTTPRequestError,
	HTTPResponse,
	HTTPStatusError,
)
from ..http.ranges import isRangeFresh, parseRange
from ..model import Service
from ..resolver import PathKind, RequestContext, resolve
from ..utils.files import STREAM, DirectoryListing, contentType
from ..utils.htmpl import H, Node, html, raw
from ..utils.logging import AccessEntry, access, exception

FILE_CSS: str = """
:root {
    font-family: sans-serif;
    font-size: 14px;
    line-height: 1.35em;
    padding: 20px;
    background: #F0F0F0;
}
h1 {
    margin-top: 1.75em;
    margin-bottom: 1.75em;
    line-height: 1.25em;
    word-break: break-all;
}
ul {
    padding: 0px 20px;
    margin: 1.25em 0em;
}
li {
    padding: 0px 10px;
    margin: 0.5em 0em;
}
li.directory {
    list-style-type: "\\1F4C1";
}
li.file {
    list-style-type: "\\1F4C4";
}
"""

# Characters `encodeURIComponent` leaves as-is, on top of alphanumerics
URI_COMPONENT_SAFE: str = "-_.!~*'()"

# Errors opening a file that mean it is not there anymore
ERRNO_MISSING: set[int] = {errno.ENOENT, errno.ENOTDIR, errno.ENAMETOOLONG}
ERRNO_FORBIDDEN: set[int] = {errno.EACCES, errno.EPERM}


def printable(name: str) -> str:
	"""Makes file names that are not valid UTF-8 safe to write in a page."""
	return name.encode("utf-8", "surrogateescape").decode("utf-8", "replace")


def asRequestError(error: OSError, what: str, name: str) -> HTTPRequestError:
	"""Maps a filesystem error on `name` to the status it is answered with."""
	if error.errno in ERRNO_MISSING:
		return HTTPRequestError(f"{what} does not exist: {name}", 404)
	elif error.errno in ERRNO_FORBIDDEN:
		return HTTPRequestError(f"{what} is not readable: {name}", 403)
	else:
		return HTTPRequestError(f"{what} could not be opened: {error}", 500)


class FileService(Service):
	"""A service to serve files from the local filesystem. Directories are
	rendered as HTML listings, files are streamed with their content type."""

	def __init__(
		self,
		config: ServerConfig | Path | str,
		*,
		logRequests: bool = True,
		name: str | None = None,
	):
		self.config: ServerConfig = (
			config if isinstance(config, ServerConfig) else ServerConfig(Path(config))
		)
		self.root: Path = Path(os.path.normpath(os.path.abspath(self.config.root)))
		self.logRequests: bool = logRequests
		super().__init__(name)

	def process(self, request: HTTPRequest) -> HTTPResponse:
		if request.method not in ("GET", "HEAD"):
			raise HTTPStatusError(405, {"Allow": "GET, HEAD"})
		ctx: RequestContext = resolve(self.root, request.path)
		match ctx.kind:
			case PathKind.Missing:
				return request.empty(404).onClose(
					lambda r: self.logAccess(request, r, failure="Path does not exist")
				)
			case PathKind.Directory:
				return self.renderDirectory(request, ctx)
			case _:
				return self.renderFile(request, ctx)

	# =========================================================================
	# DIRECTORIES
	# =========================================================================

	def renderDirectory(self, request: HTTPRequest, ctx: RequestContext) -> HTTPResponse:
		try:
			listing = DirectoryListing.Read(ctx.resolvedPath, ctx.urlPath)
		except OSError as e:
			raise asRequestError(e, "Directory", ctx.urlPath)
		# NOTE: Only the value of the range is logged, as in `bytes=0-10`
		range_header: str | None = request.header("Range")
		requested: str | None = range_header.split("=")[-1] if range_header else None
		return request.respondHTML(self.renderListing(listing)).onClose(
			lambda r: self.logAccess(request, r, range=requested)
		)

	def renderListing(self, listing: DirectoryListing) -> str:
		path: str = listing.displayPath or "/"
		base: str = path if path.endswith("/") else f"{path}/"
		parent: str | None = None
		if base != "/":
			parent = posixpath.dirname(base.rstrip("/"))
			parent = parent if parent.endswith("/") else f"{parent}/"
		items: list[Node] = [
			H.li(
				H.a(
					printable(_.label),
					href=quote(f"{base}{_.label}", errors="surrogateescape"),
				),
				_="directory" if _.isDirectory else "file",
			)
			for _ in listing.entries
		]
		title: str = printable(path)
		return "".join(
			html(
				H.html(
					H.head(
						H.meta(charset="utf-8"),
						H.meta(
							name="viewport",
							content="width=device-width, initial-scale=1.0",
						),
						H.title(f"Index of {title}"),
						H.style(raw(FILE_CSS)),
					),
					H.body(
						H.h1("Index of ", title),
						(
							H.nav(H.a("..", href=quote(parent), rel="up"))
							if parent
							else None
						),
						H.ul(items),
					),
				)
			)
		)

	# =========================================================================
	# FILES
	# =========================================================================

	def fileHeaders(
		self, path: Path, st: os.stat_result, mimeType: str
	) -> dict[str, str]:
		"""Returns the headers describing the file at `path`."""
		filename: str = quote(path.name, safe=URI_COMPONENT_SAFE, errors="surrogateescape")
		return {
			"Access-Control-Allow-Methods": "GET",
			"Content-Type": mimeType,
			"Content-Disposition": f'inline; filename="{filename}"',
			"Cache-Control": CACHE_CONTROL_STREAM if mimeType == STREAM else CACHE_CONTROL,
			"Last-Modified": formatdate(st.st_mtime, usegmt=True),
		}

	def openFile(self, path: Path) -> "HTTPBodyFile":
		try:
			f = open(path, "rb")
		except OSError as e:
			raise asRequestError(e, "File", path.name)
		size: int = os.fstat(f.fileno()).st_size
		return HTTPBodyFile(f, 0, size)

	def renderFile(self, request: HTTPRequest, ctx: RequestContext) -> HTTPResponse:
		path: Path = ctx.resolvedPath
		st: os.stat_result = ctx.stat or os.stat(path)
		# NOTE: Opening a FIFO or a device may block until a peer shows up
		if not stat.S_ISREG(st.st_mode):
			raise HTTPRequestError(f"Not a regular file: {path.name}", 403)
		mime_type: str = contentType(path)
		headers: dict[str, str] = self.fileHeaders(path, st, mime_type)
		size: int = st.st_size
		status: int = 200
		start: int = 0
		length: int = size
		if size > RANGE_MIN_SIZE:
			headers["Accept-Ranges"] = "bytes"
			range_header: str | None = request.header("Range")
			ranges = parseRange(size, range_header) if range_header else None
			if ranges is not None and isRangeFresh(
				request.header("If-Range"), headers["Last-Modified"]
			):
				if not ranges:
					raise HTTPRequestError(
						"Range Not Satisfiable", 416, {"Content-Range": f"bytes */{size}"}
					)
				elif len(ranges) == 1:
					# Several ranges would need a multipart body, we send
					# the whole file instead.
					status = 206
					headers["Content-Range"] = ranges[0].contentRange(size)
					start, length = ranges[0].start, ranges[0].length
		body = self.openFile(path)
		return request.respond(
			body._replace(offset=start, length=min(length, max(0, body.length - start))),
			status=status,
			headers=headers,
		).onClose(lambda r: self.logAccess(request, r))

	# =========================================================================
	# ERRORS & LOGGING
	# =========================================================================

	def onError(
		self, request: HTTPRequest, error: Exception, sent: bool
	) -> HTTPResponse | None:
		if sent:
			# The status is out already, all we can do is to end the response
			exception(error, f"Failed sending response to {request.method} {request.target}")
			return None
		elif isinstance(error, HTTPRequestError):
			return request.empty(error.status, error.headers).onClose(
				lambda r: self.logAccess(request, r, agent=False, failure=error.message)
			)
		elif isinstance(error, HTTPStatusError):
			return request.empty(error.status, error.headers)
		else:
			raise error

	def logAccess(
		self,
		request: HTTPRequest,
		response: HTTPResponse,
		*,
		agent: bool = True,
		range: str | None = None,
		failure: str | None = None,
	) -> None:
		if not self.logRequests:
			return None
		access(
			AccessEntry(
				address=request.address or "-",
				method=request.method,
				url=request.target,
				protocol=request.protocol,
				status=response.status,
				agent=(request.header("User-Agent") or "-") if agent else None,
				range=range,
				failure=failure,
			)
		)


# EOF
