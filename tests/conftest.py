import pytest

from turnspit import Response, TransportError


class FakeClock:
    """Monotonic clock that only moves when something sleeps on it."""

    def __init__(self, start: float = 100.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    async def async_sleep(self, seconds: float) -> None:
        self.sleep(seconds)


class ScriptedTransport:
    """Replays a script of outcomes: an int status, a Response, or an exception."""

    def __init__(self, script, clock=None):
        self.script = list(script)
        self.clock = clock
        self.sent = []
        self.sent_at = []

    def _next(self, request, timeout):
        self.sent.append((request, timeout))
        if self.clock is not None:
            self.sent_at.append(self.clock())
        outcome = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(outcome, Response):
            return outcome
        return Response(outcome, f"body-{outcome}".encode(), {})

    def send(self, request, timeout=None):
        return self._next(request, timeout)

    def close(self):
        pass


class AsyncScriptedTransport(ScriptedTransport):
    async def send(self, request, timeout=None):
        return self._next(request, timeout)

    async def aclose(self):
        pass


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def transport_error():
    return TransportError("HTTP request failed: connection refused")
