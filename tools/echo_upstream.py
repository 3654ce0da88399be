import sys

from aiohttp import web


async def echo(request):
    body = await request.read()
    print(f"\n[+] {request.method} {request.raw_path} from {request.remote}")
    print(f" -> Received body of {len(body)} bytes")
    return web.json_response({
        "method": request.method,
        "path": request.raw_path,
        "headers": {k.lower(): v for k, v in request.headers.items()},
        "body": body.decode("utf-8", errors="replace"),
    })


async def status(request):
    code = int(request.match_info["code"])
    return web.Response(status=code, text=f"status {code}", content_type="text/plain")


def make_app():
    app = web.Application()
    app.router.add_route("*", "/status/{code:\\d{3}}", status)
    app.router.add_route("*", "/{path_info:.*}", echo)
    return app


def run_upstream(port=9000):
    print(f"Echo upstream listening on port {port}...")
    print(f"Use this as the target URL: http://localhost:{port}/")
    web.run_app(make_app(), host="0.0.0.0", port=port, print=None)


if __name__ == "__main__":
    port = 9000
    if len(sys.argv) > 1:
        port = int(sys.argv[1])
    run_upstream(port)
