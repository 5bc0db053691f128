import logging
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates

from trade_portal.auth import get_current_principal
from trade_portal.config import settings
from trade_portal.routers import auth, dashboard, documents, health, invoices, shipments, stock, users
from trade_portal.security.csrf import install_csrf_cookie_middleware
from trade_portal.security.headers import install_security_headers
from trade_portal.security.sessions import install_auth_session_middleware
from trade_portal.services.money_service import format_currency

logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(name)s: %(message)s')

app = FastAPI(title='Trade Portal', version=settings.app_version)

TEMPLATE_DIR = Path(__file__).resolve().parent / 'templates'
app.state.templates = Jinja2Templates(directory=str(TEMPLATE_DIR))


def _csrf_token(request: Request) -> str:
    return getattr(request.state, 'csrf_token', '')


app.state.templates.env.globals['csrf_token'] = _csrf_token
app.state.templates.env.filters['rupiah'] = format_currency

install_security_headers(app)
install_csrf_cookie_middleware(app)
install_auth_session_middleware(app)

app.include_router(auth.router)
app.include_router(health.router)
app.include_router(dashboard.router)
app.include_router(invoices.router)
app.include_router(shipments.router)
app.include_router(stock.router)
app.include_router(documents.router)
app.include_router(users.router)

if settings.storage_provider.strip().lower() == 'local':
    app.mount(
        '/storage/v1/object/public',
        StaticFiles(directory=settings.storage_local_root, check_dir=False),
        name='storage',
    )


@app.get('/')
def root(request: Request):
    get_current_principal(request)
    return RedirectResponse('/dashboard', status_code=303)


@app.get('/robots.txt', response_class=PlainTextResponse)
def robots_txt() -> str:
    return 'User-agent: *\nDisallow: /\n'
