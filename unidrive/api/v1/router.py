from fastapi import APIRouter

from unidrive.api.v1.admin import router as admin_router
from unidrive.api.v1.files import router as files_router
from unidrive.api.v1.folders import router as folders_router
from unidrive.api.v1.items import router as items_router
from unidrive.api.v1.quota import router as quota_router
from unidrive.api.v1.shares import router as shares_router
from unidrive.api.v1.trash import router as trash_router

router = APIRouter()
router.include_router(folders_router)
router.include_router(files_router)
router.include_router(items_router)
router.include_router(trash_router)
router.include_router(quota_router)
router.include_router(shares_router)
router.include_router(admin_router)
