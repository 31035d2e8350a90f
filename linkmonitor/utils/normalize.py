def normalize_url(url: str) -> str:
    """Drop trailing slashes so one site maps to one aggregation key."""
    return url.rstrip("/")
