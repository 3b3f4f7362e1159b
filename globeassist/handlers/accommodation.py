"""Student housing research and professional booking links."""

import logging
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlencode

from globeassist.cache import CacheGate, make_cache_key
from globeassist.errors import GlobeAssistError
from globeassist.extract import extract
from globeassist.providers import ChatClient, SearchClient
from globeassist.reference import airbnb_url, normalize_country
from globeassist.schemas import AccommodationDetails

logger = logging.getLogger(__name__)

NAMESPACE = "accommodation"
TTL_SECONDS = 7 * 24 * 3600
DORM_IMAGE_COUNT = 4

BOOKING_SEARCH_URL = "https://www.booking.com/searchresults.html"


def accommodation_prompt(university: str, country: str) -> str:
    return f"""{university} in {country} accommodation for international students. Return JSON only:
{{
  "dormInfo": {{"available": bool, "types": ["type"], "costRange": "USD X-Y/month", "costRangePKR": "PKR", "facilities": ["facility"], "applicationDeadline": "date", "images": []}},
  "privateHousing": {{"avgRent": "USD/month", "avgRentPKR": "PKR", "popularAreas": ["area"], "resources": [{{"name": "name", "url": "url"}}]}},
  "applicationProcess": {{"steps": ["step"], "requiredDocuments": ["doc"], "timeline": "timeline", "whereToApply": "location", "applicationUrl": "url"}},
  "pakistaniStudentInfo": {{"tips": ["tip"], "supportResources": [{{"name": "name", "contact": "email/phone"}}]}}
}}"""


class AccommodationHandler:
    def __init__(self, chat: ChatClient, search: SearchClient, cache: CacheGate):
        self.chat = chat
        self.search = search
        self.cache = cache

    async def get(
        self, university: str, country: str, refresh: bool = False
    ) -> Tuple[Dict[str, Any], bool]:
        return await self.cache.fetch(
            make_cache_key(university, normalize_country(country)),
            lambda: self._research(university, country),
            refresh=refresh,
        )

    async def _research(self, university: str, country: str) -> Dict[str, Any]:
        logger.info("Researching accommodation for %s, %s", university, country)
        raw = await self.chat.complete(
            accommodation_prompt(university, country), temperature=0.3, max_tokens=2000
        )
        details = extract(raw, AccommodationDetails)
        if not details.dormInfo.images:
            details.dormInfo.images = await self.dorm_images(university)
        return details.model_dump()

    async def dorm_images(self, university: str) -> List[str]:
        if not self.search.enabled:
            return []
        try:
            images = await self.search.images(
                f"{university} student dormitory accommodation", num=DORM_IMAGE_COUNT
            )
        except GlobeAssistError as exc:
            logger.warning("Dorm image search failed for %s: %s", university, exc)
            return []
        urls = [img.get("imageUrl") or img.get("thumbnailUrl") for img in images]
        return [str(url) for url in urls if url][:DORM_IMAGE_COUNT]


def booking_url(
    city: str,
    country: str,
    checkin: Optional[str] = None,
    checkout: Optional[str] = None,
) -> str:
    params = {
        "ss": f"{city}, {country}",
        "lang": "en-us",
        "sb": "1",
        "src_elem": "sb",
        "src": "index",
        "dest_type": "city",
        "group_adults": "1",
        "no_rooms": "1",
        "group_children": "0",
    }
    if checkin:
        params["checkin"] = checkin
    if checkout:
        params["checkout"] = checkout
    return f"{BOOKING_SEARCH_URL}?{urlencode(params)}"


def booking_links(
    city: str,
    country: str,
    checkin: Optional[str] = None,
    checkout: Optional[str] = None,
) -> Dict[str, Any]:
    """Hotel and short-let search links for a city. No network calls."""
    city_name = city.split(",")[0].strip()
    hotels = booking_url(city_name, country, checkin, checkout)
    homes = airbnb_url(city_name, country, checkin, checkout)

    accommodations = [
        {
            "id": "booking-hotels",
            "name": f"Hotels near {city_name}",
            "type": "Hotels & Apartments",
            "description": f"Find hotels, apartments, and guesthouses in {city_name}, {country}. "
            "Compare prices and read reviews from verified guests.",
            "provider": "Booking.com",
            "url": hotels,
            "features": [
                "Free Cancellation Available",
                "Price Match Guarantee",
                "24/7 Customer Support",
            ],
            "rating": 4.5,
            "priceRange": "Various price ranges available",
        },
        {
            "id": "airbnb-stays",
            "name": f"Airbnb in {city_name}",
            "type": "Homes & Apartments",
            "description": f"Discover unique stays and local experiences in {city_name}, {country}. "
            "From private rooms to entire homes.",
            "provider": "Airbnb",
            "url": homes,
            "features": [
                "Unique Local Stays",
                "Self Check-in Options",
                "Long-term Discounts",
            ],
            "rating": 4.4,
            "priceRange": "Various price ranges available",
        },
    ]

    return {
        "city": city_name,
        "country": country,
        "accommodations": accommodations,
        "bookingUrl": hotels,
        "airbnbUrl": homes,
        "message": f"Found accommodation options in {city_name}, {country}",
    }
