import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from coursemart.clients.identity_provider import IdentityProviderClient
from coursemart.config import Settings
from coursemart.database import init_db
from coursemart.lms.router import router as lms_router
from coursemart.models.course import Course
from coursemart.models.course_section import CourseSection
from coursemart.models.lesson import Lesson
from coursemart.ordering.service import OrderedCollectionManager
from coursemart.products.router import router as products_router
from coursemart.purchases.router import router as purchases_router
from coursemart.rate_limit import limiter
from coursemart.users.router import router as users_router
from coursemart.webhooks.identity import IdentityDirectory, IdentityEventReconciler
from coursemart.webhooks.payments import PaymentEventReconciler
from coursemart.webhooks.router import router as webhooks_router
from coursemart.webhooks.signature import WebhookVerifier
from shared.middleware import RequestIdFilter, error_envelope_middleware, request_id_middleware

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:[%(request_id)s] %(message)s",
)
for _handler in logging.getLogger().handlers:
    _handler.addFilter(RequestIdFilter())

logger = logging.getLogger(__name__)


def get_settings() -> Settings:
    return Settings()


def init_app_state(
    app: FastAPI,
    settings: Settings,
    *,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    identity_client: IdentityDirectory | None = None,
) -> None:
    """Build every collaborator once and hang it on ``app.state``.

    Tests pass their own session factory and a fake identity client.
    """
    if session_factory is None:
        session_factory = init_db(settings)
    if identity_client is None:
        identity_client = IdentityProviderClient(
            settings.identity_api_base_url,
            settings.identity_secret_key,
            timeout=settings.identity_api_timeout_secs,
        )

    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.identity_client = identity_client

    app.state.section_manager = OrderedCollectionManager(
        session_factory,
        CourseSection,
        parent_model=Course,
        parent_key="course_id",
        label="Section",
        max_attempts=settings.ordering_max_attempts,
    )
    app.state.lesson_manager = OrderedCollectionManager(
        session_factory,
        Lesson,
        parent_model=CourseSection,
        parent_key="section_id",
        label="Lesson",
        max_attempts=settings.ordering_max_attempts,
    )

    # Identity provider signs with Svix headers, payment provider with webhook-* headers
    app.state.identity_verifier = WebhookVerifier(
        settings.identity_webhook_secret,
        header_prefix="svix",
    )
    app.state.payment_verifier = WebhookVerifier(
        settings.payment_webhook_secret,
        header_prefix="webhook",
    )
    app.state.identity_reconciler = IdentityEventReconciler(session_factory, identity_client)
    app.state.payment_reconciler = PaymentEventReconciler(session_factory)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = app.state.settings
    init_app_state(app, settings)
    logger.info("coursemart started (env=%s)", settings.env_name)

    yield

    # Shutdown
    if isinstance(app.state.identity_client, IdentityProviderClient):
        await app.state.identity_client.aclose()
    await app.state.session_factory.kw["bind"].dispose()


SWAGGER_DESCRIPTION = """\
## Coursemart: Course Storefront Service

Sells bundles of video courses. Admins manage courses, sections, lessons and
products; learners buy products and work through the lessons they unlock.

### Domain Tags

| Tag | Description |
|-----|-------------|
| **LMS** | Course, section, lesson CRUD + ordering + lesson completion |
| **Products** | Product catalogue and bundled courses |
| **Purchases** | Learner purchase history + admin sales views |
| **Users** | Sync the signed-in user from the identity provider |
| **Webhooks** | Identity and payment provider callbacks |

### Authentication

Admin and learner endpoints require a JWT Bearer token in the
`Authorization` header: `{"sub": "<user_uuid>", "role": "user" | "admin"}`.
Webhooks are authenticated by their provider signature instead.

### Ordering

Sections and lessons carry a `sort_order`. New rows are appended at the end;
a reorder request must list every sibling id exactly once.
"""


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(
        title="Coursemart",
        version="0.1.0",
        description=SWAGGER_DESCRIPTION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings

    # Attach rate limiter state before middleware
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Middleware is applied in reverse-registration order (last added = outermost).
    app.add_middleware(SlowAPIMiddleware)
    app.middleware("http")(error_envelope_middleware)
    app.middleware("http")(request_id_middleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        max_age=600,
    )

    app.include_router(lms_router, prefix="/api")
    app.include_router(products_router, prefix="/api")
    app.include_router(purchases_router, prefix="/api")
    app.include_router(users_router, prefix="/api")
    app.include_router(webhooks_router, prefix="/api")

    @app.get("/health", tags=["Health"])
    async def health() -> dict:
        return {"status": "ok", "service": "coursemart"}

    return app


app = create_app()
