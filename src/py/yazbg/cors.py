from .http.model import HTTPResponse

# SEE: https://developer.mozilla.org/en-US/docs/Web/HTTP/CORS

CORS_METHODS: str = "GET, OPTIONS"
CORS_HEADERS: str = "Content-Type"


def corsHeaders(
	*, methods: str = CORS_METHODS, headers: str = CORS_HEADERS
) -> dict[str, str | int | None]:
	"""Returns the permissive CORS headers: any origin may read the response."""
	return {
		"Access-Control-Allow-Origin": "*",
		"Access-Control-Allow-Methods": methods,
		"Access-Control-Allow-Headers": headers,
	}


def setCORSHeaders(
	response: HTTPResponse,
	*,
	methods: str = CORS_METHODS,
	headers: str = CORS_HEADERS,
) -> HTTPResponse:
	"""Sets the CORS headers on the given response, and returns it.

	See <https://en.wikipedia.org/wiki/Cross-origin_resource_sharing>
	"""
	return response.setHeaders(corsHeaders(methods=methods, headers=headers))


# EOF
