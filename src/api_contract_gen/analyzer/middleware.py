"""Middleware classification: categories, headers, auth and rate limits."""

import inspect
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

CATEGORIES = [
    ("authentication", ("auth", "sanctum", "passport")),
    ("rate_limiting", ("throttle", "rate")),
    ("validation", ("validate", "verify")),
    ("cors", ("cors", "cross")),
    ("guest", ("guest",)),
    ("caching", ("cache",)),
    ("encryption", ("encrypt", "decrypt")),
]

KNOWN_RATE_LIMITS = {
    "api": "60 requests per minute",
    "webhook": "5000 requests per minute",
    "login": "5 requests per minute",
    "signup": "5 requests per minute",
    "sessions": "5 requests per minute",
    "phone-number": "3 requests per minute",
}

_EXPLICIT_THROTTLE = re.compile(r"^\s*(\d+)\s*,\s*(\d+)\s*$")


def middleware_name(middleware: Any) -> str:
    """Registered name of a middleware entry (string, class or instance)."""
    if isinstance(middleware, str):
        return middleware
    cls = middleware if inspect.isclass(middleware) else type(middleware)
    return cls.__name__


class MiddlewareClassifier:
    def __init__(self, rate_limiters: dict[str, str | dict] | None = None, passport: bool = True):
        self.rate_limiters = rate_limiters or {}
        self.passport = passport

    def classify(self, middleware: list[Any]) -> list[dict]:
        return [self._classify_one(m) for m in middleware]

    def _classify_one(self, middleware: Any) -> dict:
        if not isinstance(middleware, str):
            name = middleware_name(middleware)
            return {"name": name, "category": self.categorize(name), "parameters": {}}

        name, sep, args = middleware.partition(":")
        parameters: dict = {}
        if sep:
            if "," in args:
                parameters["values"] = [part.strip() for part in args.split(",")]
            else:
                parameters["value"] = args
        return {"name": name, "category": self.categorize(name), "parameters": parameters}

    def categorize(self, name: str) -> str:
        lowered = name.lower()
        for category, keywords in CATEGORIES:
            if any(k in lowered for k in keywords):
                return category
        return "other"

    def extract_required_headers(self, middleware: list[Any]) -> list[dict]:
        headers = []
        for entry in middleware:
            lowered = middleware_name(entry).lower()
            if "cors" in lowered:
                headers.append(_header("Origin", False, "Origin header for CORS requests"))
                headers.append(_header("Access-Control-Request-Method", False, "CORS preflight request method"))
            if "throttle" in lowered or "rate" in lowered:
                headers.append(_header("X-RateLimit-Limit", False, "Rate limit information"))
            if "apikey" in lowered or "api-key" in lowered:
                headers.append(_header("X-API-Key", True, "API key for authentication"))
        return headers

    def detect_content_negotiation(self, middleware: list[Any]) -> dict[str, dict]:
        formats: dict[str, dict] = {}
        for entry in middleware:
            formats["application/json"] = {"format": "json", "description": "JSON format (default)"}
            if "xml" in middleware_name(entry).lower():
                formats["application/xml"] = {"format": "xml", "description": "XML format"}
        return formats

    def determine_auth(self, middleware: list[Any]) -> dict:
        """Auth scheme of the first middleware entry that matches any auth rule."""
        for entry in middleware:
            auth = self._auth_for(middleware_name(entry).lower())
            if auth is not None:
                return auth
        return {"type": "none"}

    def _auth_for(self, name: str) -> dict | None:
        if "auth:sanctum" in name or "auth:api" in name:
            provider = "sanctum" if "sanctum" in name else "api"
            return {"type": "bearer", "scheme": "bearer", "provider": provider}
        if self.passport and "passport" in name:
            return {"type": "oauth2", "provider": "passport"}
        if "jwt" in name:
            return {"type": "bearer", "scheme": "bearer", "provider": "jwt"}
        if "apikey" in name or "api-key" in name or "api_key" in name:
            return {"type": "apiKey", "in": "header", "name": "X-API-Key"}
        if "oauth" in name:
            return {"type": "oauth2"}
        if "auth.basic" in name or "basic" in name:
            return {"type": "basic", "scheme": "basic"}
        if "guest" in name:
            return {"type": "none"}
        return None

    def extract_rate_limit(self, middleware: list[Any]) -> dict | None:
        for entry in middleware:
            if not isinstance(entry, str) or not entry.startswith("throttle:"):
                continue
            argument = entry[len("throttle:"):]

            explicit = _EXPLICIT_THROTTLE.match(argument)
            if explicit:
                attempts, minutes = int(explicit.group(1)), int(explicit.group(2))
                return {
                    "max_attempts": attempts,
                    "decay_minutes": minutes,
                    "description": f"{attempts} requests per {minutes} minute(s)",
                }
            return self._named_rate_limit(argument)
        return None

    def _named_rate_limit(self, name: str) -> dict:
        configured = self.rate_limiters.get(name)
        if isinstance(configured, dict) and "max_attempts" in configured:
            attempts = configured["max_attempts"]
            minutes = configured.get("decay_minutes", 1)
            return {
                "name": name,
                "max_attempts": attempts,
                "decay_minutes": minutes,
                "description": configured.get("description", f"{attempts} requests per {minutes} minute(s)"),
            }
        if isinstance(configured, str):
            return {"name": name, "description": configured}
        if name in KNOWN_RATE_LIMITS:
            return {"name": name, "description": KNOWN_RATE_LIMITS[name]}
        return {"name": name, "description": f"Rate limit: {name}"}


def _header(name: str, required: bool, description: str) -> dict:
    return {"name": name, "required": required, "description": description}
