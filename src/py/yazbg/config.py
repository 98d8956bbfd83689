import os
from os import getenv
from typing import NamedTuple

# If we're starting the server in a development environment, we want it to be
# accessible from other devices on the local network.
HOST: str = getenv("HOST", "0.0.0.0")  # nosec: B104

# When set, overrides the port of whichever preset is selected.
PORT: int | None = int(getenv("PORT", "0")) or None

LOG_REQUESTS: bool = getenv("YAZBG_LOG_REQUESTS", "1") == "1"


class Preset(NamedTuple):
	"""The defaults that distinguish one flavour of the server from another."""

	name: str
	port: int
	document: str
	corsMethods: str


PRESETS: dict[str, Preset] = {
	# Serves the game page for `/`, this is what the web build ships with.
	"yazbg": Preset("yazbg", 8080, "yazbg.html", "GET, OPTIONS"),
	# A plain static server where `/` is the usual `index.html`
	"index": Preset("index", 8181, "index.html", "GET, POST, OPTIONS"),
}

DEFAULT_PRESET: str = "yazbg"


class ServerConfig(NamedTuple):
	"""The whole configuration of the server, built once at startup and
	never changed afterwards."""

	root: str = "."
	port: int = PRESETS[DEFAULT_PRESET].port
	host: str = HOST
	cors: bool = True
	document: str = PRESETS[DEFAULT_PRESET].document
	corsMethods: str = PRESETS[DEFAULT_PRESET].corsMethods
	# Uses the resolver that refuses paths outside of the root
	sandbox: bool = False
	# Answers `OPTIONS` requests directly instead of looking up a file
	preflight: bool = False
	logRequests: bool = LOG_REQUESTS

	@staticmethod
	def FromPreset(
		preset: str = DEFAULT_PRESET, **overrides: str | int | bool | None
	) -> "ServerConfig":
		"""Creates a configuration with the defaults of the given preset,
		any override set to `None` is ignored."""
		if preset not in PRESETS:
			raise ValueError(
				f"Unknown preset '{preset}', expected one of: {', '.join(PRESETS)}"
			)
		p = PRESETS[preset]
		values: dict[str, str | int | bool] = {
			"port": p.port if PORT is None else PORT,
			"document": p.document,
			"corsMethods": p.corsMethods,
		}
		for k, v in overrides.items():
			if k not in ServerConfig._fields:
				raise TypeError(f"Unknown configuration option: {k}")
			if v is not None:
				values[k] = v
		# NamedTuple won't type-check a dynamic mapping, so we go through
		# `_make` with the fields in order.
		return ServerConfig._make(
			values.get(k, ServerConfig._field_defaults[k]) for k in ServerConfig._fields
		)

	@property
	def rootPath(self) -> str:
		return os.path.abspath(self.root)

	@property
	def documentPath(self) -> str:
		return os.path.abspath(os.path.join(self.root, self.document))


# EOF
