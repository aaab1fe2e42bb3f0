"""
Distance resolution: place-name geocoding, caching, and haversine distance.

Modules
-------
cache    : GeoCache protocol + UnboundedGeoCache / LRUGeoCache strategies.
client   : Geocoder protocol + NominatimGeocoder (httpx.AsyncClient).
distance : haversine_km(), heuristic fallback tiers, DistanceResolver.

The only asynchronous part of the engine lives here.
"""
