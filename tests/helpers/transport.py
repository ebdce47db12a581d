"""Scripted transports for dispatch engine tests."""

from dataclasses import dataclass, field

from fetcher.models import FetchRequest, FetchResponse, ResponseType


def make_response(
    status: int = 200,
    data: object = "ok",
    response_type: ResponseType = ResponseType.TEXT,
    url: str = "https://example.com/",
) -> FetchResponse:
    """Build a response as a transport would return it."""
    return FetchResponse(
        ok=FetchResponse.is_ok_status(status),
        status=status,
        status_text="",
        url=url,
        headers={},
        cookies=[],
        type=response_type,
        data=data,
    )


@dataclass
class ScriptedTransport:
    """Transport replaying a fixed sequence of outcomes.

    Each outcome is either a FetchResponse to return or an exception to
    raise. The last outcome repeats once the script runs out.

    Attributes:
        outcomes: Outcomes in call order.
        requests: Snapshot of every request received.
    """

    outcomes: list[FetchResponse | Exception]
    requests: list[FetchRequest] = field(default_factory=list)

    @property
    def calls(self) -> int:
        """Number of times the transport was invoked."""
        return len(self.requests)

    def __call__(self, request: FetchRequest) -> FetchResponse:
        self.requests.append(request.model_copy(deep=True))
        index = min(len(self.requests), len(self.outcomes)) - 1
        outcome = self.outcomes[index]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@dataclass
class SleepRecorder:
    """Stand-in for time.sleep that records requested delays."""

    delays: list[float] = field(default_factory=list)

    def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
