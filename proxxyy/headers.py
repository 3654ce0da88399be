from multidict import CIMultiDict

HOP_BY_HOP_HEADERS = frozenset({
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "proxy-connection",
    "te",
    "trailer",
    "trailers",
    "transfer-encoding",
    "upgrade",
})

# Re-derived by aiohttp from the body actually sent
REQUEST_SKIP_HEADERS = frozenset({"host", "content-length"})
# Upstream bodies are relayed decoded
RESPONSE_SKIP_HEADERS = frozenset({"content-length", "content-encoding"})

CORS_HEADERS = (
    ("Access-Control-Allow-Origin", "*"),
    ("Access-Control-Allow-Methods", "GET, POST, PUT, DELETE, OPTIONS"),
    ("Access-Control-Allow-Headers", "Content-Type, Authorization"),
)
DEFAULT_CONTENT_TYPE = "application/json"


def strip_hop_by_hop(headers, skip=frozenset()) -> CIMultiDict:
    """Copy headers without hop-by-hop ones, including any named in Connection."""
    source = CIMultiDict(headers)
    dropped = set(HOP_BY_HOP_HEADERS) | set(skip)
    for value in source.getall("Connection", []):
        dropped.update(token.strip().lower() for token in value.split(",") if token.strip())

    result = CIMultiDict()
    for name, value in source.items():
        if name.lower() not in dropped:
            result.add(name, value)
    return result


def compose_headers(intrinsic, add_cors=False, extra_headers=()) -> CIMultiDict:
    """
    Build the final response headers.

    Layers apply in order, each replacing earlier values for the same name:
    intrinsic headers, the CORS defaults when enabled, then extra headers.
    """
    headers = CIMultiDict(intrinsic)
    if add_cors:
        had_content_type = "Content-Type" in headers
        for name, value in CORS_HEADERS:
            headers[name] = value
        if not had_content_type:
            headers["Content-Type"] = DEFAULT_CONTENT_TYPE
    for name, value in extra_headers:
        headers[name] = value
    return headers
