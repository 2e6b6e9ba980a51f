from pathlib import Path

import pytest

from dirserve.config import (
	PORT,
	ConfigurationError,
	ServerConfig,
	normalizeDirectory,
	parsePort,
)


def test_parse_port():
	assert parsePort("8080") == 8080
	assert parsePort("8080.0") == 8080
	assert parsePort(9000) == 9000
	assert parsePort("0") == 0
	for value in (None, "", "abc", "8080.5", "-1", "inf", "nan", True):
		assert parsePort(value) == PORT, value


def test_normalize_directory(tree: Path):
	assert normalizeDirectory(None, tree) == tree
	assert normalizeDirectory("", tree) == tree
	assert normalizeDirectory("sub", tree) == tree / "sub"
	assert normalizeDirectory("./sub/../sub", tree) == tree / "sub"
	assert normalizeDirectory(str(tree / "sub"), "/") == tree / "sub"
	# Windows shells can leave a quote after a trailing backslash
	assert normalizeDirectory('sub"', tree) == tree / "sub"


def test_normalize_directory_backticks(tmp_path: Path):
	(tmp_path / "album [2024]").mkdir()
	assert normalizeDirectory("album `[2024`]", tmp_path) == tmp_path / "album [2024]"


def test_normalize_directory_missing(tmp_path: Path):
	with pytest.raises(ConfigurationError) as e:
		normalizeDirectory("missing", tmp_path)
	assert str(e.value) == f"Directory doesn't exist: {tmp_path / 'missing'}"


def test_server_config(tree: Path):
	config = ServerConfig.Make("9000", "sub", cwd=tree)
	assert config.root == tree / "sub"
	assert config.port == 9000
	assert ServerConfig.Make(None, None, cwd=tree).port == PORT
	with pytest.raises(ConfigurationError):
		ServerConfig.Make(None, "a.txt", cwd=tree)


# EOF
