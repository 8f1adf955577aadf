class GeoError(Exception):
    """Base class for location and distance failures."""


class LocationNotFound(GeoError):
    pass


class RateLimited(GeoError):
    """Provider answered HTTP 429. Callers should back off, not retry at once."""


class GeocodingError(GeoError):
    """Bad status, malformed body or transport failure."""


class LocationUnresolvable(GeoError):
    """Every resolution tier failed."""


class RoutingTimeout(GeoError):
    pass
