from .http.model import HTTPRequest, HTTPResponse  # NOQA: F401
from .config import ServerConfig, PRESETS  # NOQA: F401
from .files import FileService, contentType, joinPath, sandboxPath  # NOQA: F401
from .server import run  # NOQA: F401


# EOF
