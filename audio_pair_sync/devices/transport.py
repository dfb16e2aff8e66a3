"""
Blocking JSON-over-HTTP requests run in the default executor
"""

import asyncio
import http.client
import json
import urllib.error
import urllib.request
from typing import Any, Optional

from ..errors import CollaboratorError

USER_AGENT = "audio-pair-sync/1.0"
REQUEST_TIMEOUT = 5.0


class JsonHttpTransport:
    def __init__(self, timeout: float = REQUEST_TIMEOUT, user_agent: str = USER_AGENT):
        self.timeout = timeout
        self.user_agent = user_agent

    async def get(self, url: str) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._request, url, None)

    async def post(self, url: str, payload: Optional[dict] = None) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._request, url, payload or {})

    def _request(self, url: str, payload: Optional[dict]) -> Any:
        headers = {"User-Agent": self.user_agent, "Accept": "application/json"}
        data = None
        if payload is not None:
            data = json.dumps(payload).encode("utf-8")
            headers["Content-Type"] = "application/json"

        try:
            request = urllib.request.Request(url, data=data, headers=headers)
            with urllib.request.urlopen(request, timeout=self.timeout) as response:
                body = response.read()
        except urllib.error.HTTPError as e:
            raise CollaboratorError(f"HTTP {e.code}: {e.reason}", device=url) from e
        except (urllib.error.URLError, OSError) as e:
            raise CollaboratorError(f"No response from device: {e}", device=url) from e
        except (ValueError, http.client.HTTPException) as e:
            raise CollaboratorError(f"Bad request to device: {e}", device=url) from e

        if not body.strip():
            return None
        try:
            return json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise CollaboratorError(f"Malformed response: {e}", device=url) from e
