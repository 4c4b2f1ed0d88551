import factory

from discovery.fetchers.base import (
    AdapterResponse,
    Attempt,
    AttemptOutcome,
    TransportErrorKind,
    TransportFailure,
)


class AdapterResponseFactory(factory.Factory):
    class Meta:
        model = AdapterResponse

    body = "<html><body><h1>Tonight's events</h1></body></html>"
    status_code = 200
    adapter = "direct"
    headers = factory.LazyFunction(lambda: [("Content-Type", "text/html")])
    extra = factory.LazyFunction(dict)


class TransportFailureFactory(factory.Factory):
    class Meta:
        model = TransportFailure

    adapter = "direct"
    kind = TransportErrorKind.TIMEOUT
    message = "Operation timed out after 30000 milliseconds"
    retry_after = None


class AttemptFactory(factory.Factory):
    class Meta:
        model = Attempt

    adapter = "direct"
    outcome = AttemptOutcome.SUCCESS
    status_code = 200
