from api_contract_gen.analyzer.middleware import MiddlewareClassifier, middleware_name


class CorsMiddleware:
    pass


class TestClassify:
    def test_string_middleware_with_parameters(self):
        classified = MiddlewareClassifier().classify(["auth:sanctum", "throttle:60,1", "cors"])
        assert classified[0] == {"name": "auth", "category": "authentication", "parameters": {"value": "sanctum"}}
        assert classified[1] == {"name": "throttle", "category": "rate_limiting", "parameters": {"values": ["60", "1"]}}
        assert classified[2] == {"name": "cors", "category": "cors", "parameters": {}}

    def test_class_middleware(self):
        assert middleware_name(CorsMiddleware) == "CorsMiddleware"
        assert middleware_name(CorsMiddleware()) == "CorsMiddleware"
        classified = MiddlewareClassifier().classify([CorsMiddleware])
        assert classified == [{"name": "CorsMiddleware", "category": "cors", "parameters": {}}]

    def test_categories(self):
        classifier = MiddlewareClassifier()
        assert classifier.categorize("verify.signature") == "validation"
        assert classifier.categorize("guest") == "guest"
        assert classifier.categorize("cache.headers") == "caching"
        assert classifier.categorize("encrypt.cookies") == "encryption"
        assert classifier.categorize("bindings") == "other"


class TestDetermineAuth:
    def test_bearer_providers(self):
        classifier = MiddlewareClassifier()
        assert classifier.determine_auth(["auth:sanctum"]) == {"type": "bearer", "scheme": "bearer", "provider": "sanctum"}
        assert classifier.determine_auth(["auth:api"])["provider"] == "api"
        assert classifier.determine_auth(["jwt.auth"])["provider"] == "jwt"

    def test_other_schemes(self):
        classifier = MiddlewareClassifier()
        assert classifier.determine_auth(["passport"]) == {"type": "oauth2", "provider": "passport"}
        assert classifier.determine_auth(["apikey"]) == {"type": "apiKey", "in": "header", "name": "X-API-Key"}
        assert classifier.determine_auth(["oauth.scopes"]) == {"type": "oauth2"}
        assert classifier.determine_auth(["auth.basic"]) == {"type": "basic", "scheme": "basic"}
        assert classifier.determine_auth(["guest"]) == {"type": "none"}

    def test_passport_disabled(self):
        assert MiddlewareClassifier(passport=False).determine_auth(["passport"]) == {"type": "none"}

    def test_first_matching_entry_wins(self):
        auth = MiddlewareClassifier().determine_auth(["throttle:api", "guest", "auth:sanctum"])
        assert auth == {"type": "none"}

    def test_no_auth_middleware(self):
        assert MiddlewareClassifier().determine_auth(["api", "throttle:api"]) == {"type": "none"}
        assert MiddlewareClassifier().determine_auth([]) == {"type": "none"}


class TestRateLimit:
    def test_explicit_limit(self):
        limit = MiddlewareClassifier().extract_rate_limit(["throttle:10,1"])
        assert limit == {"max_attempts": 10, "decay_minutes": 1, "description": "10 requests per 1 minute(s)"}

    def test_configured_limiter(self):
        classifier = MiddlewareClassifier({
            "uploads": {"max_attempts": 20, "decay_minutes": 5},
            "search": "30 requests per minute",
        })
        assert classifier.extract_rate_limit(["throttle:uploads"]) == {
            "name": "uploads",
            "max_attempts": 20,
            "decay_minutes": 5,
            "description": "20 requests per 5 minute(s)",
        }
        assert classifier.extract_rate_limit(["throttle:search"]) == {
            "name": "search", "description": "30 requests per minute",
        }

    def test_known_and_unknown_limiters(self):
        classifier = MiddlewareClassifier()
        assert classifier.extract_rate_limit(["throttle:api"])["description"] == "60 requests per minute"
        assert classifier.extract_rate_limit(["throttle:exports"]) == {
            "name": "exports", "description": "Rate limit: exports",
        }

    def test_no_throttle(self):
        assert MiddlewareClassifier().extract_rate_limit(["auth:sanctum"]) is None


class TestHeaders:
    def test_required_headers(self):
        headers = MiddlewareClassifier().extract_required_headers(["cors", "throttle:api", "apikey"])
        names = [h["name"] for h in headers]
        assert names == ["Origin", "Access-Control-Request-Method", "X-RateLimit-Limit", "X-API-Key"]
        assert headers[-1]["required"] is True

    def test_content_negotiation(self):
        classifier = MiddlewareClassifier()
        assert classifier.detect_content_negotiation([]) == {}
        formats = classifier.detect_content_negotiation(["api", "xml.response"])
        assert set(formats) == {"application/json", "application/xml"}
