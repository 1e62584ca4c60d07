from pathlib import Path
from unittest.mock import patch

from api_contract_gen.analyzer.source import SourceHeuristicResolver
from api_contract_gen.cache.analysis import AnalysisCache, AstCache
from api_contract_gen.routing.base import parse_handler
from api_contract_gen.routing.reflection import HandlerInspector

RESOURCES = Path(__file__).parent / "fixtures" / "sampleapp" / "resources"
POSTS = "sampleapp.controllers.posts.PostController"


def _resolver(**overrides) -> SourceHeuristicResolver:
    options = dict(
        resources_path=RESOURCES,
        subnamespaces=["posts", "users"],
        response_helpers=["json_response"],
    )
    options.update(overrides)
    return SourceHeuristicResolver(AstCache(), "sampleapp.resources", **options)


def _info(reference: str):
    return HandlerInspector().inspect(parse_handler(reference))


class TestPreload:
    def test_discovers_serializers(self):
        available = _resolver().preload()
        assert available["PostResource"] == "sampleapp.resources.posts.PostResource"
        assert available["PostCollection"] == "sampleapp.resources.posts.PostCollection"
        assert available["UserResource"] == "sampleapp.resources.users.UserResource"
        assert "TagResource" in available

    def test_missing_directory(self, tmp_path):
        assert _resolver(resources_path=tmp_path / "nope").preload() == {}


class TestFindSerializer:
    def test_factory_call(self):
        resolver = _resolver()
        assert resolver.find_serializer_for_handler(_info(f"{POSTS}@show")) == "sampleapp.resources.posts.PostResource"

    def test_constructor_call(self):
        resolver = _resolver()
        found = resolver.find_serializer_for_handler(_info(f"{POSTS}@index"))
        assert found == "sampleapp.resources.posts.PostCollection"

    def test_factory_inside_tuple_return(self):
        resolver = _resolver()
        assert resolver.find_serializer_for_handler(_info(f"{POSTS}@store")) == "sampleapp.resources.posts.PostResource"

    def test_no_serializer(self):
        resolver = _resolver()
        assert resolver.find_serializer_for_handler(_info("sampleapp.controllers.users.UserController@legacy")) is None

    def test_closure_handler(self):
        from sampleapp.routes import health

        resolver = _resolver()
        assert resolver.find_serializer_for_handler(HandlerInspector().inspect(parse_handler(health))) is None

    def test_text_fallback_when_module_unparseable(self):
        resolver = _resolver()
        with patch.object(resolver.ast_cache, "get", return_value=None):
            found = resolver.find_serializer_for_handler(_info(f"{POSTS}@show"))
        assert found == "sampleapp.resources.posts.PostResource"

    def test_lookup_is_cached(self):
        cache = AnalysisCache()
        resolver = _resolver(cache=cache)
        info = _info(f"{POSTS}@show")

        resolver.find_serializer_for_handler(info)
        assert cache.get("serializer_lookup", info.reference) == {"serializer": "sampleapp.resources.posts.PostResource"}

        with patch.object(resolver, "_find") as mock_find:
            assert resolver.find_serializer_for_handler(info) == "sampleapp.resources.posts.PostResource"
            mock_find.assert_not_called()


class TestResolveClassName:
    def test_via_imports(self):
        imports = {"PR": "sampleapp.resources.posts.PostResource"}
        assert _resolver().resolve_class_name("PR", imports) == "sampleapp.resources.posts.PostResource"

    def test_via_subnamespace(self):
        assert _resolver().resolve_class_name("UserResource", {}) == "sampleapp.resources.users.UserResource"

    def test_via_preloaded_names(self):
        resolver = _resolver(subnamespaces=[])
        assert resolver.resolve_class_name("CommentResource", {}) is None
        resolver.preload()
        assert resolver.resolve_class_name("CommentResource", {}) == "sampleapp.resources.comments.CommentResource"

    def test_unknown_name(self):
        assert _resolver().resolve_class_name("GhostResource", {}) is None


class TestInspectResponseClass:
    def test_single_resource_import(self):
        from sampleapp.responses import PostShowResponse

        assert _resolver().inspect_response_class(PostShowResponse) == "sampleapp.resources.posts.PostResource"

    def test_index_prefers_collection(self):
        from sampleapp.responses import PostIndexResponse

        assert _resolver().inspect_response_class(PostIndexResponse) == "sampleapp.resources.posts.PostCollection"
