import time
from typing import Optional

import httpx

from ussd.observability.logging import log


class FriendbotProvisioner:
    """
    Funds a freshly registered testnet address with XLM.
    Funding is best-effort: the account record already exists when this runs,
    so any failure only changes the completion text.
    """

    def __init__(self, base_url: str, timeout_sec: float = 10.0, client: Optional[httpx.Client] = None):
        self.base_url = (base_url or "").rstrip("/")
        self.timeout_sec = float(timeout_sec)
        self._client = client

    @property
    def enabled(self) -> bool:
        return bool(self.base_url)

    def fund(self, address: str) -> bool:
        if not self.enabled:
            log(event="provisioning_skipped_no_url")
            return False

        start = time.time()
        try:
            if self._client is not None:
                resp = self._client.get(self.base_url + "/", params={"addr": address}, timeout=self.timeout_sec)
            else:
                with httpx.Client(timeout=self.timeout_sec) as client:
                    resp = client.get(self.base_url + "/", params={"addr": address})
        except httpx.HTTPError as e:
            log(
                event="provisioning_exception",
                address=address,
                errorType=type(e).__name__,
                elapsedMs=int((time.time() - start) * 1000),
            )
            return False

        elapsed_ms = int((time.time() - start) * 1000)
        if 200 <= resp.status_code < 300:
            log(event="provisioning_funded", address=address, elapsedMs=elapsed_ms)
            return True

        log(
            event="provisioning_failed",
            address=address,
            statusCode=int(resp.status_code),
            elapsedMs=elapsed_ms,
            responseText=(resp.text or "")[:300],
        )
        return False
