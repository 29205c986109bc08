import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from academy import config
from academy.auth.router import router as auth_router, users_router
from academy.auth.service import ensure_admin_user
from academy.categories.router import router as categories_router
from academy.courses.router import router as courses_router
from academy.database import create_indexes, db
from academy.enrollments.router import router as enrollments_router
from academy.errors import register_error_handlers
from academy.instructors.router import router as instructors_router
from academy.leads.router import router as applications_router
from academy.payment.router import router as payment_router
from academy.promotions.campaign_router import router as campaigns_router
from academy.promotions.coupon_router import router as coupons_router
from academy.system.health_router import router as health_router

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Academy API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
)

register_error_handlers(app)


@app.on_event("startup")
async def startup_event():
    await create_indexes(db)
    await ensure_admin_user(db)
    logger.info("Academy API started (%s)", config.ENVIRONMENT)


# ==================== ROUTER REGISTRATION ====================
app.include_router(auth_router, prefix="/auth")
app.include_router(users_router, prefix="/users")
app.include_router(categories_router, prefix="/categories")
app.include_router(courses_router, prefix="/courses")
app.include_router(enrollments_router, prefix="/enrollments")
app.include_router(payment_router, prefix="/payment")
app.include_router(coupons_router, prefix="/coupons")
app.include_router(campaigns_router, prefix="/campaigns")
app.include_router(instructors_router, prefix="/instructors")
app.include_router(applications_router, prefix="/applications")
app.include_router(health_router, prefix="/health")
# ============================================================

app.mount("/uploads", StaticFiles(directory=config.UPLOAD_DIR, check_dir=False), name="uploads")


@app.get("/")
async def root():
    return {"message": "Academy API is running", "environment": config.ENVIRONMENT}
