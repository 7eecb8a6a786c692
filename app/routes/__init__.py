from fastapi import APIRouter
from .users import router as users_router
from .auth import router as auth_router
from .request import router as request_router
from .hospital import router as hospital_router


router = APIRouter()

router.include_router(users_router)
router.include_router(auth_router)
router.include_router(request_router)
router.include_router(hospital_router)
