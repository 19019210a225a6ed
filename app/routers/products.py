import logging

from fastapi import APIRouter, Depends

from app.models.chat import ProductList
from app.routers.chat import get_assistant
from app.services.assistant import RagAssistant

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/products", tags=["products"])


@router.get("", response_model=ProductList)
async def list_products(assistant: RagAssistant = Depends(get_assistant)):
    """List the product names the assistant currently knows."""
    products = assistant.catalog.products
    return ProductList(brand=assistant.catalog.brand, products=products, total=len(products))


@router.post("/reload", response_model=ProductList)
def reload_products(assistant: RagAssistant = Depends(get_assistant)):
    """Refresh the catalog from the vector index, keeping the old list on failure."""
    products = assistant.reload_catalog()
    logger.info("Catalog reloaded: %d products", len(products))
    return ProductList(brand=assistant.catalog.brand, products=products, total=len(products))
