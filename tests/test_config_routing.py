from pathlib import Path

import pytest

from api_contract_gen.config import load_settings
from api_contract_gen.errors import ConfigError, RouteAnalysisError
from api_contract_gen.routing.base import ClosureHandler, ControllerHandler, RouteRecord, parse_handler
from api_contract_gen.routing.reflection import HandlerInspector, locate
from api_contract_gen.routing.registry import api_routes, load_routes

POSTS = "sampleapp.controllers.posts.PostController"


def ping():
    return "pong"


class Router:
    def routes(self):
        return [("api/ping", "get", ping)]


ROUTER = Router()
NOT_A_ROUTE = [42]


class TestLoadSettings:
    def test_defaults_without_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        settings = load_settings()
        assert settings.contract_path == "api-contracts/api.json"
        assert settings.route_prefix == "api/"
        assert settings.cache.backend == "file"
        assert settings.versions_path == Path("api-contracts/versions")
        assert settings.resource_subnamespaces == []

    def test_reads_yaml(self, tmp_path):
        config = tmp_path / "api-contract.yaml"
        config.write_text(
            "contract_path: out/contract.json\n"
            "routes: sampleapp.routes:ROUTES\n"
            "rate_limiters:\n"
            "  uploads: {max_attempts: 20, decay_minutes: 5}\n"
            "cache:\n"
            "  backend: memory\n"
            "  ttl: 60\n"
        )
        settings = load_settings(config)
        assert settings.contract_path == "out/contract.json"
        assert settings.routes == "sampleapp.routes:ROUTES"
        assert settings.rate_limiters["uploads"]["max_attempts"] == 20
        assert settings.cache.backend == "memory"
        assert settings.cache.ttl == 60
        assert settings.versions_path == Path("out/versions")

    def test_env_overrides(self, tmp_path, monkeypatch):
        config = tmp_path / "api-contract.yaml"
        config.write_text("contract_path: from-file.json\n")
        monkeypatch.setenv("API_CONTRACT_CONTRACT_PATH", "from-env.json")
        monkeypatch.setenv("API_CONTRACT_PASSPORT", "false")
        settings = load_settings(config)
        assert settings.contract_path == "from-env.json"
        assert settings.passport is False

    def test_missing_explicit_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_settings(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path):
        config = tmp_path / "api-contract.yaml"
        config.write_text("routes: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_settings(config)

    def test_not_a_mapping(self, tmp_path):
        config = tmp_path / "api-contract.yaml"
        config.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_settings(config)

    def test_invalid_values(self, tmp_path):
        config = tmp_path / "api-contract.yaml"
        config.write_text("cache:\n  ttl: soon\n")
        with pytest.raises(ConfigError, match="Invalid configuration"):
            load_settings(config)


class TestRouteRecord:
    def test_define_normalizes(self):
        route = RouteRecord.define("api/v1/posts", ["get", "head"], f"{POSTS}@index", name="posts.index")
        assert route.methods == ["GET", "HEAD"]
        assert route.normalized_uri == "/api/v1/posts"
        assert isinstance(route.handler, ControllerHandler)
        assert route.handler.reference == f"{POSTS}@index"

    def test_closure_handler(self):
        route = RouteRecord.define("/api/ping", "GET", ping)
        assert isinstance(route.handler, ClosureHandler)
        assert route.handler.reference == "test_config_routing.ping"
        assert route.normalized_uri == "/api/ping"

    def test_malformed_controller_string(self):
        handler = parse_handler("app.controllers.PostController")
        assert handler.method == ""


class TestLoadRoutes:
    def test_list_of_mixed_definitions(self):
        routes = load_routes("sampleapp.routes:ROUTES")
        assert all(isinstance(r, RouteRecord) for r in routes)
        assert routes[4].normalized_uri == "/api/v2/users/{user}"
        assert routes[5].methods == ["GET"]

    def test_callable(self):
        from sampleapp.routes import CLEAN

        assert len(load_routes("sampleapp.routes:clean_routes")) == len(CLEAN)

    def test_object_with_routes_method(self):
        routes = load_routes("test_config_routing:ROUTER")
        assert [r.normalized_uri for r in routes] == ["/api/ping"]
        assert routes[0].methods == ["GET"]

    @pytest.mark.parametrize("reference, message", [
        (None, "No route table"),
        ("sampleapp.routes", "Invalid routes reference"),
        ("sampleapp.nowhere:ROUTES", "Could not import"),
        ("sampleapp.routes:MISSING", "has no attribute"),
        ("test_config_routing:NOT_A_ROUTE", "Unsupported route"),
    ])
    def test_errors(self, reference, message):
        with pytest.raises(ConfigError, match=message):
            load_routes(reference)

    def test_api_prefix_filter(self):
        routes = load_routes("sampleapp.routes:ROUTES")
        filtered = api_routes(routes, "/api/")
        assert "/home" not in [r.normalized_uri for r in filtered]
        assert len(filtered) == len(routes) - 1


class TestHandlerInspector:
    def test_controller_method(self):
        info = HandlerInspector().inspect(parse_handler(f"{POSTS}@show"))
        assert info.name == "show"
        assert info.module == "sampleapp.controllers.posts"
        assert list(info.parameters) == ["post"]
        assert info.parameters["post"] is locate("sampleapp.models.Post")
        assert info.source_file.endswith("posts.py")
        assert info.start_line < info.end_line
        assert not info.has_return_annotation

    def test_return_annotation(self):
        info = HandlerInspector().inspect(parse_handler("sampleapp.controllers.users.UserController@show"))
        assert info.return_annotation is locate("sampleapp.resources.users.UserResource")

    def test_memoized_per_reference(self):
        inspector = HandlerInspector()
        handler = parse_handler(f"{POSTS}@show")
        assert inspector.inspect(handler) is inspector.inspect(handler)

    @pytest.mark.parametrize("reference, code", [
        (POSTS, "ROUTE_INVALID_ACTION"),
        ("sampleapp.controllers.reports.ReportController@show", "ROUTE_CONTROLLER_NOT_FOUND"),
        (f"{POSTS}@archive", "ROUTE_METHOD_NOT_FOUND"),
    ])
    def test_failures(self, reference, code):
        with pytest.raises(RouteAnalysisError) as excinfo:
            HandlerInspector().inspect(parse_handler(reference))
        assert excinfo.value.code == code
        assert excinfo.value.to_dict()["suggestion"]

    def test_locate(self):
        assert locate("sampleapp.models.Post").__name__ == "Post"
        assert locate("sampleapp.models.Nope") is None
        assert locate("nowhere.at.all") is None
