from rest_framework.throttling import UserRateThrottle, AnonRateThrottle


class BurstRateThrottle(AnonRateThrottle):
    """
    Strict IP-based throttling for registration and login attempts.
    Scope: 'burst' (Configured in settings)
    """
    scope = 'burst'


class SustainedRateThrottle(UserRateThrottle):
    """
    General API usage.
    """
    scope = 'sustained'
