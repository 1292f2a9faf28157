"""API v1 router."""

from fastapi import APIRouter

from proofage.api.v1.merchant_keys import router as merchant_keys_router
from proofage.api.v1.proofs import router as proofs_router
from proofage.api.v1.relying import router as relying_router

router = APIRouter()

router.include_router(merchant_keys_router, prefix="/merchant", tags=["merchant"])
router.include_router(proofs_router, prefix="/proof", tags=["proof"])
router.include_router(relying_router, prefix="/relying", tags=["relying"])
