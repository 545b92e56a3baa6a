import logging

import requests

from src.domain.errors import RemoteError
from src.domain.models import AlgorithmSignal, Pair


logger = logging.getLogger(__name__)


class SignalClient:
    """
    Reads current algorithm signals from the signal service.

    One synchronous GET per call, no retries: a failed fetch only skips the account that asked.
    """

    def __init__(self, base_url: str, timeout_seconds: float = 10.0, session: requests.Session | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = float(timeout_seconds)
        self.session = session or requests.Session()

    def fetch(self, pair: Pair, interval: int) -> dict[str, AlgorithmSignal]:
        url = f"{self.base_url}/signals"
        params = {"pair": str(pair), "interval": int(interval)}
        try:
            resp = self.session.get(url, params=params, timeout=self.timeout_seconds)
        except requests.RequestException as e:
            raise RemoteError(f"Signal service unreachable: {e}") from e

        if not 200 <= resp.status_code < 300:
            raise RemoteError(f"Signal service returned HTTP {resp.status_code} for {pair}/{interval}")

        try:
            data = resp.json()
        except ValueError as e:
            raise RemoteError(f"Signal service returned a non-JSON body for {pair}/{interval}") from e
        if not isinstance(data, dict):
            raise RemoteError(f"Signal service must return an object; got {type(data).__name__}")

        signals: dict[str, AlgorithmSignal] = {}
        for name, raw in data.items():
            try:
                signals[str(name)] = AlgorithmSignal.from_dict(raw)
            except ValueError as e:
                raise RemoteError(f"Malformed signal for algorithm {name!r}: {e}") from e

        logger.debug("Fetched %d signals for %s/%s", len(signals), pair, interval)
        return signals
