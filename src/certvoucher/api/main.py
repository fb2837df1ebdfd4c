"""FastAPI application factory for the voucher distribution API.

Exposes a :func:`create_app` factory function that instantiates the
:class:`fastapi.FastAPI` application, builds or accepts the two external
service clients (:class:`~certvoucher.store.client.SupabaseStore` and
:class:`~certvoucher.mail.resend.ResendMailer`), wires the
:class:`~certvoucher.workflow.distribution.DistributionWorkflow` on top of
them, and registers the router defined in :mod:`certvoucher.api.routes`.

Usage::

    # Production startup (uvicorn)
    uvicorn certvoucher.api.main:app --host 0.0.0.0 --port 8000

    # Testing: pass substitute clients and a fixed clock
    from certvoucher.api.main import create_app
    app = create_app(store=fake_store, mailer=fake_mailer, clock=lambda: NOW)

Components are attached to ``app.state`` so that route handlers can
retrieve them via ``request.app.state``.  Clients built by the factory are
closed when the application shuts down; injected clients are left to their
owner.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI

from certvoucher.api import errors
from certvoucher.api.routes import router
from certvoucher.config import AppConfig, get_config
from certvoucher.mail.resend import ResendMailer
from certvoucher.store.client import SupabaseStore
from certvoucher.workflow.alerts import OperatorAlerter
from certvoucher.workflow.distribution import DistributionWorkflow

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------


def create_app(
    store: SupabaseStore | None = None,
    mailer: ResendMailer | None = None,
    config: AppConfig | None = None,
    clock: Callable[[], datetime] | None = None,
) -> FastAPI:
    """Create and configure the voucher distribution FastAPI application.

    Parameters
    ----------
    store:
        Pre-built data store client.  If ``None``, one is constructed from
        ``SUPABASE_URL`` / ``SUPABASE_KEY``.
    mailer:
        Pre-built email client.  If ``None``, one is constructed from
        ``RESEND_API_KEY`` / ``RESEND_API_URL``.
    config:
        Settings to use.  If ``None``, they are read from the environment via
        :func:`~certvoucher.config.get_config`.
    clock:
        Returns the current UTC time.  Defaults to the system clock.

    Returns
    -------
    FastAPI
        A fully-configured application instance with all routes registered
        and dependencies attached to ``app.state``.
    """
    if config is None:
        config = get_config()
    if clock is None:
        clock = _utcnow

    owned: list[SupabaseStore | ResendMailer] = []

    if store is None:
        store = SupabaseStore(
            config.supabase_url, config.supabase_key, timeout=config.http_timeout
        )
        owned.append(store)
        logger.info("Data store client initialised for %s", config.supabase_url or "<unset>")

    if mailer is None:
        mailer = ResendMailer(
            config.resend_api_key,
            base_url=config.resend_api_url,
            timeout=config.http_timeout,
        )
        owned.append(mailer)
        logger.info("Email client initialised for %s", config.resend_api_url)

    alerter = OperatorAlerter(
        mailer,
        sender=config.alert_sender,
        recipient=config.admin_email,
        clock=clock,
    )
    workflow = DistributionWorkflow(
        store,
        mailer,
        alerter,
        sender=config.voucher_sender,
        clock=clock,
    )

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        yield
        for client in owned:
            await client.aclose()

    app = FastAPI(
        title="Certification Voucher Distribution API",
        description=(
            "Receives winner events from the CRM, emails each winner a "
            "certification voucher and the next class, and records the "
            "distribution."
        ),
        version=_get_version(),
        lifespan=lifespan,
    )

    # ---- Attach to app.state ----
    app.state.config = config
    app.state.store = store
    app.state.mailer = mailer
    app.state.workflow = workflow
    app.state.clock = clock

    # ---- Errors, CORS, routes ----
    errors.install(app)
    app.include_router(router)

    return app


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _get_version() -> str:
    """Return the installed package version, or ``"unknown"`` when not installed."""
    import importlib.metadata  # local import keeps module-level imports clean

    try:
        return importlib.metadata.version("cert-voucher")
    except importlib.metadata.PackageNotFoundError:
        return "unknown"


def _build_production_app() -> FastAPI:
    config = get_config()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return create_app(config=config)


# ---------------------------------------------------------------------------
# Production application instance
# ---------------------------------------------------------------------------

#: Module-level application object for production use with uvicorn:
#:
#:   uvicorn certvoucher.api.main:app --host 0.0.0.0 --port 8000
app: FastAPI = _build_production_app()
