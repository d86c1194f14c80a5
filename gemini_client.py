import http.client
import json
import socket
import urllib.error
import urllib.parse
import urllib.request

from config import GEMINI_API_KEY, GEMINI_URL, GEMINI_TIMEOUT_S
from errors import ServiceError


def call_gemini(prompt: str, temperature: float = 0.2, timeout_s: int = GEMINI_TIMEOUT_S) -> str:
    if not GEMINI_API_KEY:
        raise ServiceError("AI assistant is not configured (missing GEMINI_API_KEY)")

    payload = {
        "contents": [{"role": "user", "parts": [{"text": prompt}]}],
        "generationConfig": {"temperature": temperature},
    }

    url = f"{GEMINI_URL}?key={urllib.parse.quote(GEMINI_API_KEY)}"
    data = json.dumps(payload).encode("utf-8")
    req = urllib.request.Request(url, data=data, headers={"Content-Type": "application/json"})

    try:
        with urllib.request.urlopen(req, timeout=timeout_s) as resp:
            raw = resp.read()
    except urllib.error.HTTPError as e:
        if e.code == 429:
            raise ServiceError(
                "AI assistant is temporarily unavailable (Gemini API quota exceeded). "
                "Please try again later.",
                retryable=True,
            ) from e
        if e.code == 404:
            raise ServiceError("AI Model Not Found (check GEMINI_MODEL)") from e
        raise ServiceError(f"Gemini request failed with HTTP {e.code}") from e
    except (socket.timeout, TimeoutError) as e:
        raise ServiceError("AI assistant timed out, please try again", retryable=True) from e
    except urllib.error.URLError as e:
        if isinstance(e.reason, (socket.timeout, TimeoutError)):
            raise ServiceError("AI assistant timed out, please try again", retryable=True) from e
        raise ServiceError("AI assistant is unreachable", retryable=True) from e
    except (OSError, http.client.HTTPException) as e:
        # dropped or truncated connections: RemoteDisconnected, IncompleteRead, resets
        raise ServiceError("AI assistant is unreachable", retryable=True) from e

    try:
        response_data = json.loads(raw.decode("utf-8"))
    except ValueError as e:
        raise ServiceError("Gemini returned a non-JSON response") from e

    try:
        return response_data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError) as e:
        raise ServiceError(f"Unexpected Gemini response format: {response_data}") from e
