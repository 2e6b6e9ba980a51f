import re
from email.utils import parsedate_to_datetime
from typing import NamedTuple

# SEE: https://www.rfc-editor.org/rfc/rfc9110#name-range-requests

RE_BYTES_RANGE = re.compile(r"^ *bytes=")
RE_RANGE_BOUNDS = re.compile(r"^\s*(\d*)\s*-\s*(\d*)\s*$")


class ByteRange(NamedTuple):
	"""An inclusive range of bytes, as in `bytes=start-end`."""

	start: int
	end: int

	@property
	def length(self) -> int:
		return self.end - self.start + 1

	def contentRange(self, size: int) -> str:
		return f"bytes {self.start}-{self.end}/{size}"


def parseRange(size: int, header: str) -> list[ByteRange] | None:
	"""Parses the value of a `Range` header for a resource of `size` bytes.
	Returns `None` when the header is not a byte range, and the list of
	satisfiable ranges otherwise, sorted with overlapping and adjacent ranges
	merged. An empty list means the range is not satisfiable."""
	if not RE_BYTES_RANGE.match(header):
		return None
	ranges: list[ByteRange] = []
	for part in header.split("=", 1)[1].split(","):
		match = RE_RANGE_BOUNDS.match(part)
		if not match:
			continue
		first, last = match.group(1), match.group(2)
		if not first:
			# A suffix range like `-500` asks for the last bytes
			if not last:
				continue
			start, end = size - int(last), size - 1
		else:
			start = int(first)
			end = int(last) if last else size - 1
		end = min(end, size - 1)
		if start < 0 or start > end:
			continue
		ranges.append(ByteRange(start, end))
	merged: list[ByteRange] = []
	for r in sorted(ranges):
		if merged and r.start <= merged[-1].end + 1:
			if r.end > merged[-1].end:
				merged[-1] = ByteRange(merged[-1].start, r.end)
		else:
			merged.append(r)
	return merged


def isRangeFresh(ifRange: str | None, lastModified: str | None) -> bool:
	"""Tells if a ranged response can be sent given the request's `If-Range`
	header. Entity tags never match, as none are generated."""
	if not ifRange:
		return True
	elif '"' in ifRange or not lastModified:
		return False
	try:
		return parsedate_to_datetime(lastModified) <= parsedate_to_datetime(ifRange)
	except (TypeError, ValueError):
		return False


# EOF
