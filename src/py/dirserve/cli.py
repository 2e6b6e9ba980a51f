import argparse
import sys

from . import __version__
from .config import PORT, ConfigurationError, ServerConfig
from .server import run
from .services.files import FileService
from .utils.logging import info


def main(args: list[str] | None = None) -> int:
	"""Runs the file server from command line arguments, returning the exit
	status."""
	parser = argparse.ArgumentParser(
		prog="dirserve",
		description="Serves the files of a local directory over HTTP",
	)

	# Register the options
	parser.add_argument(
		"-d",
		"--directory",
		action="store",
		dest="directory",
		help="The directory to serve, the current one by default",
	)
	parser.add_argument(
		"--version",
		action="version",
		version=f"%(prog)s {__version__}",
	)

	# NOTE: The port is not typed as `int`, values that are not a number
	# fall back to the default port instead of failing.
	parser.add_argument(
		"port",
		metavar="PORT",
		nargs="?",
		default=str(PORT),
		help=f"The port to listen on ({PORT} by default)",
	)

	options = parser.parse_args(args=args)

	try:
		config = ServerConfig.Make(options.port, options.directory)
	except ConfigurationError as e:
		sys.stderr.write(f"{e}\n")
		sys.stderr.flush()
		return 1

	info("Serving directory", icon="📂", Root=str(config.root))
	try:
		run(FileService(config), host=config.host, port=config.port)
	except OSError:
		# The bind error has already been logged
		return 1
	return 0


if __name__ == "__main__":
	sys.exit(main(sys.argv[1:]))

# EOF
