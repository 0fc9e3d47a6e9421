"""
propertyhub/routes_properties.py

Listing endpoints.

- Reads are public and go through the read-through cache.
- Writes require authentication; update/delete are owner-only (403 otherwise).
- Every write invalidates the affected cache entries.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Path, Query, Request

from propertyhub.auth_context import AuthContext, require_auth_context
from propertyhub.dependencies import get_mutations, get_query_service
from propertyhub.listing_service import ListingMutations, ListingQueryService
from propertyhub.schemas import ListingCreateRequest, ListingUpdateRequest

router = APIRouter(
    prefix="/api/properties",
    tags=["properties"],
)


@router.get("")
def list_properties(
    request: Request,
    service: ListingQueryService = Depends(get_query_service),
) -> Dict[str, Any]:
    """
    Filtered, sorted, paginated listing search.

    Query params (all optional): type, city, state, minPrice, maxPrice,
    bedrooms, bathrooms, furnished, listingType, amenities, tags, listedBy,
    sortBy, sortOrder, page, limit.

    Returns:
        {properties: [...], pagination: {page, limit, total, pages}}
    """
    # Raw params: the cache key is derived from exactly what the client sent
    return service.list_listings(dict(request.query_params))


@router.get("/search/text")
def search_properties_text(
    q: Optional[str] = Query(None, description="Free-text query (required)"),
    limit: Optional[str] = Query(None, description="Max results (default 10)"),
    service: ListingQueryService = Depends(get_query_service),
) -> List[Dict[str, Any]]:
    """Case-insensitive match on title, city, state, type, tags and amenities."""
    return service.search_text(q, limit)


@router.get("/{property_id}")
def get_property(
    property_id: str = Path(..., description="Storage id or external listing id"),
    service: ListingQueryService = Depends(get_query_service),
) -> Dict[str, Any]:
    return service.get_listing(property_id)


@router.post("", status_code=201)
def create_property(
    body: ListingCreateRequest,
    ctx: AuthContext = Depends(require_auth_context),
    mutations: ListingMutations = Depends(get_mutations),
) -> Dict[str, Any]:
    listing = mutations.create_listing(ctx.user_id, body.to_document())
    return {"message": "Property created successfully", "property": listing}


@router.put("/{property_id}")
def update_property(
    body: ListingUpdateRequest,
    property_id: str = Path(..., description="Storage id or external listing id"),
    ctx: AuthContext = Depends(require_auth_context),
    mutations: ListingMutations = Depends(get_mutations),
) -> Dict[str, Any]:
    listing = mutations.update_listing(property_id, ctx.user_id, body.to_changes())
    return {"message": "Property updated successfully", "property": listing}


@router.delete("/{property_id}")
def delete_property(
    property_id: str = Path(..., description="Storage id or external listing id"),
    ctx: AuthContext = Depends(require_auth_context),
    mutations: ListingMutations = Depends(get_mutations),
) -> Dict[str, str]:
    mutations.delete_listing(property_id, ctx.user_id)
    return {"message": "Property deleted successfully"}
