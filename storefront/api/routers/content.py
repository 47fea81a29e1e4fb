# storefront/api/routers/content.py
from fastapi import APIRouter, Depends, HTTPException, Request

from storefront.domain.schemas import ContentOut
from storefront.services.content_service import PAGE_RE, ContentService

router = APIRouter(prefix="/content", tags=["content"])


def get_content_service() -> ContentService:
    return ContentService()


@router.get("/{page}", response_model=ContentOut)
def get_page(page: str, request: Request, svc: ContentService = Depends(get_content_service)):
    if not PAGE_RE.match(page):
        raise HTTPException(status_code=404, detail="Page not found")
    return svc.get_page(page, request.state.locale)
