"""
Error types shared by the provider clients, the fetch pipeline and the settlement engine
"""


class ProviderError(Exception):
    """Base class for failures talking to an external data provider"""

    def __init__(self, service, message, endpoint=None):
        self.service = service
        self.endpoint = endpoint
        super().__init__(f"{service}: {message}")


class ProviderUnavailable(ProviderError):
    """Network failure, timeout or non-2xx response"""

    def __init__(self, service, message, endpoint=None, status_code=None):
        self.status_code = status_code
        super().__init__(service, message, endpoint=endpoint)


class ProviderRateLimited(ProviderError):
    """Provider answered 429 or its quota is spent"""


class MalformedProviderData(ProviderError):
    """Provider body could not be decoded or had an unexpected shape"""


class NoMatchFound(LookupError):
    """A provider record did not correspond to any stored game"""

    def __init__(self, home_team, away_team):
        self.home_team = home_team
        self.away_team = away_team
        super().__init__(f"No stored game matches {away_team} @ {home_team}")


class StoreFailure(RuntimeError):
    """A database write could not be completed"""
