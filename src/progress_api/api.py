from fastapi import APIRouter

from progress_api.modules.admissions import router as applications_router
from progress_api.modules.admissions.admin_router import router as admin_applications_router
from progress_api.modules.auth import router as auth_router

api_router = APIRouter()

api_router.include_router(auth_router, prefix="/auth", tags=["Authentication"])

api_router.include_router(applications_router, prefix="/applications", tags=["Applications"])

api_router.include_router(
    admin_applications_router,
    prefix="/admin/applications",
    tags=["Admin - Applications"],
)
