from fastapi import APIRouter

from pharma_catalog.api.routes import products

api_router = APIRouter()
api_router.include_router(products.router)
