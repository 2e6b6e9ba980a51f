from pathlib import Path

import pytest

from dirserve.http.model import HTTPBodyBlob, HTTPBodyFile, HTTPResponse


@pytest.fixture
def tree(tmp_path: Path) -> Path:
	"""A directory with `a.txt`, and `sub/LICENSE`."""
	(tmp_path / "a.txt").write_text("hello")
	(tmp_path / "sub").mkdir()
	(tmp_path / "sub" / "LICENSE").write_text("MIT License")
	return tmp_path


def sparse(path: Path, size: int) -> Path:
	"""Creates a file of the given size without writing its content."""
	with open(path, "wb") as f:
		f.truncate(size)
	return path


def payload(res: HTTPResponse) -> bytes:
	"""Reads the body of the response, closing it."""
	body = res.body
	try:
		if isinstance(body, HTTPBodyBlob):
			return body.payload
		elif isinstance(body, HTTPBodyFile):
			body.file.seek(body.offset)
			return body.file.read(body.length)
		else:
			return b""
	finally:
		res.close()


# EOF
