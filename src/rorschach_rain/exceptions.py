# exceptions.py
class RorschachError(Exception):
    """Base exception for radar ink-blot errors"""
    pass

class TileFetchError(RorschachError):
    """Raised when a single radar tile cannot be fetched or decoded"""
    pass

class FeedUnavailableError(RorschachError):
    """Raised when the radar metadata feed cannot be fetched or parsed"""
    pass

class NamerError(RorschachError):
    """Raised when the external shape namer fails or returns nothing usable"""
    pass
