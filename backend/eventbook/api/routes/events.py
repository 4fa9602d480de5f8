"""
Event endpoints with Redis read-through caching.

List and detail views are cached for CACHE_TTL_SECONDS, the availability
snapshot for AVAILABILITY_CACHE_TTL_SECONDS. Writes commit first, then
invalidate every view derived from the event.
"""

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from eventbook.api.deps import get_cache, get_db
from eventbook.schemas.event import (
    AvailabilityResponse,
    EventCreate,
    EventListResponse,
    EventResponse,
    EventUpdate,
)
from eventbook.schemas.booking import BookingDetailResponse
from eventbook.services import event_service
from eventbook.services.booking_service import list_event_bookings
from eventbook.services.cache_service import (
    CacheService,
    availability_key,
    event_key,
    event_list_key,
)
from eventbook.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/events", tags=["Events"])


@router.post("/", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event_endpoint(
    event_data: EventCreate,
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    event = await event_service.create_event(db, event_data)
    await cache.invalidate_pattern(event_list_key())
    return event


@router.get("/", response_model=EventListResponse)
async def list_events_endpoint(
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    """List all events ordered by date, with current availability."""
    cached = await cache.get(event_list_key())
    if cached is not None:
        logger.info("events_list_cache_hit")
        return EventListResponse(events=cached, total=len(cached), cached=True)

    events = [EventResponse.model_validate(e).model_dump(mode="json") for e in await event_service.list_events(db)]
    await cache.put(event_list_key(), events, cache.default_ttl)
    return EventListResponse(events=events, total=len(events), cached=False)


@router.get("/{event_id}", response_model=EventResponse)
async def get_event_endpoint(
    event_id: int,
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    cached = await cache.get(event_key(event_id))
    if cached is not None:
        return cached

    event = EventResponse.model_validate(await event_service.get_event(db, event_id)).model_dump(mode="json")
    await cache.put(event_key(event_id), event, cache.default_ttl)
    return event


@router.get("/{event_id}/availability", response_model=AvailabilityResponse)
async def get_availability_endpoint(
    event_id: int,
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    """Seat availability snapshot. Cached briefly: it changes with every booking."""
    cached = await cache.get(availability_key(event_id))
    if cached is not None:
        return AvailabilityResponse(**cached, cached=True)

    availability = await event_service.get_availability(db, event_id)
    await cache.put(availability_key(event_id), availability, cache.availability_ttl)
    return AvailabilityResponse(**availability)


@router.put("/{event_id}", response_model=EventResponse)
async def update_event_endpoint(
    event_id: int,
    changes: EventUpdate,
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    event = await event_service.update_event(db, event_id, changes)
    await cache.invalidate_event(event_id)
    return event


@router.delete("/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_event_endpoint(
    event_id: int,
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    await event_service.delete_event(db, event_id)
    await cache.invalidate_event(event_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{event_id}/bookings", response_model=list[BookingDetailResponse])
async def list_event_bookings_endpoint(event_id: int, db: AsyncSession = Depends(get_db)):
    """Bookings for one event, newest first. Not cached."""
    return await list_event_bookings(db, event_id)
