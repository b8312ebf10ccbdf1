class TransportError(Exception):
    """The push channel is not usable; callers fall back to HTTP."""
