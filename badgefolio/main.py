import logging
import logging.config

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from badgefolio.auth.auth_router import router as auth_router
from badgefolio.auth.auth_utils import hash_password
from badgefolio.badges.badge_router import router as badge_router
from badgefolio.badges.category_router import router as category_router
from badgefolio.community.community_router import router as community_router
from badgefolio.config import LOG_LEVEL, SUPER_ADMIN_EMAIL, SUPER_ADMIN_PASSWORD
from badgefolio.database import create_indexes, db
from badgefolio.submissions.submission_router import router as submission_router
from badgefolio.users.invite_router import router as invite_router
from badgefolio.users.user_models import Role, User
from badgefolio.users.user_router import router as user_router

LOGGING_CONFIG = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'standard': {
            'format': '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
        },
    },
    'handlers': {
        'console': {
            'level': LOG_LEVEL,
            'class': 'logging.StreamHandler',
            'formatter': 'standard',
        },
    },
    'loggers': {
        'badgefolio': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False
        }
    }
}

logging.config.dictConfig(LOGGING_CONFIG)
logger = logging.getLogger(__name__)

app = FastAPI(title="BadgeFolio API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ==================== ERROR BODIES ====================

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    body = exc.detail if isinstance(exc.detail, dict) else {"error": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=body, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request body", "details": jsonable_encoder(exc.errors())},
    )

# ==================== STARTUP ====================

async def ensure_super_admin(database):
    """Create the super admin account from the environment when it does not exist yet"""
    if not SUPER_ADMIN_PASSWORD:
        return
    if await database.users.find_one({"email": SUPER_ADMIN_EMAIL}):
        return

    user = User(
        name="Super Admin",
        email=SUPER_ADMIN_EMAIL,
        role=Role.ADMIN,
        password_hash=hash_password(SUPER_ADMIN_PASSWORD),
    )
    await database.users.insert_one(user.dict())
    logger.info("Super admin account %s created", SUPER_ADMIN_EMAIL)


@app.on_event("startup")
async def startup_event():
    await create_indexes(db)
    await ensure_super_admin(db)

# ==================== ROUTER REGISTRATION ====================
app.include_router(auth_router)
app.include_router(invite_router)
app.include_router(user_router)
app.include_router(community_router)
app.include_router(badge_router)
app.include_router(category_router)
app.include_router(submission_router)
# ============================================================


@app.get("/health")
async def health():
    return {"status": "ok"}
