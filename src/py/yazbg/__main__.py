import argparse
import sys
from .config import DEFAULT_PRESET, PRESETS, ServerConfig
from .server import run

EPILOG: str = "\n".join(
	f"  {_.name:8s} port {_.port}, '/' serves {_.document}, CORS methods: {_.corsMethods}"
	for _ in PRESETS.values()
)


def port(value: str) -> int:
	try:
		res = int(value, 10)
	except ValueError:
		raise argparse.ArgumentTypeError(f"invalid port number: '{value}'") from None
	if not 0 < res < 65536:
		raise argparse.ArgumentTypeError(f"port out of range: {res}")
	return res


def parser() -> argparse.ArgumentParser:
	res = argparse.ArgumentParser(
		prog="yazbg",
		description="YAZBG Web Server, serves the files of a directory for local development. "
		"Note that the root URL (/) serves the default document.",
		epilog=f"presets:\n{EPILOG}",
		formatter_class=argparse.RawDescriptionHelpFormatter,
	)
	res.add_argument(
		"--path",
		action="store",
		dest="root",
		default=".",
		help="Set the root path to serve files from (default: current directory)",
	)
	res.add_argument(
		"-p",
		"--port",
		action="store",
		dest="port",
		type=port,
		help="Set the server port (default: from the preset, or $PORT)",
	)
	res.add_argument(
		"--host",
		action="store",
		dest="host",
		help="Set the address to listen on (default: $HOST or 0.0.0.0)",
	)
	res.add_argument(
		"--no-cors",
		action="store_false",
		dest="cors",
		help="Disable CORS headers",
	)
	res.add_argument(
		"-d",
		"--document",
		action="store",
		dest="document",
		help="Set the document served for the root URL (default: from the preset)",
	)
	res.add_argument(
		"--preset",
		action="store",
		dest="preset",
		choices=list(PRESETS),
		default=DEFAULT_PRESET,
		help=f"Select the preset defaults (default: {DEFAULT_PRESET})",
	)
	res.add_argument(
		"--sandbox",
		action="store_true",
		dest="sandbox",
		help="Refuse to serve paths outside of the root directory",
	)
	res.add_argument(
		"--preflight",
		action="store_true",
		dest="preflight",
		help="Answer OPTIONS requests with the CORS headers instead of a file",
	)
	return res


def configure(args: list[str]) -> ServerConfig:
	"""Parses the command line arguments into a server configuration. Note
	that `--help` and invalid arguments exit the process."""
	options = parser().parse_args(args)
	return ServerConfig.FromPreset(
		options.preset,
		root=options.root,
		port=options.port,
		host=options.host,
		cors=options.cors,
		document=options.document,
		sandbox=options.sandbox,
		preflight=options.preflight,
	)


def main(args: list[str] | None = None) -> int:
	return run(configure(sys.argv[1:] if args is None else args))


if __name__ == "__main__":
	sys.exit(main())

# EOF
