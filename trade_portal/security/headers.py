from fastapi import FastAPI, Request
from starlette.responses import Response

ROBOTS_HEADER = 'noindex, nofollow, noarchive'
PUBLIC_STORAGE_PREFIX = '/storage/v1/object/public/'

BASE_HEADERS = {
    'X-Robots-Tag': ROBOTS_HEADER,
    'X-Content-Type-Options': 'nosniff',
    'X-Frame-Options': 'DENY',
    'Referrer-Policy': 'same-origin',
}


def install_security_headers(app: FastAPI) -> None:
    @app.middleware('http')
    async def add_security_headers(request: Request, call_next):
        response: Response = await call_next(request)
        for name, value in BASE_HEADERS.items():
            response.headers[name] = value
        # Invoice and stock pages carry customer data; stored files may be cached.
        if not request.url.path.startswith(PUBLIC_STORAGE_PREFIX):
            response.headers.setdefault('Cache-Control', 'no-store')
        return response
