"""Route table of the sample application."""

from api_contract_gen.routing.base import RouteRecord

POSTS = "sampleapp.controllers.posts.PostController"
USERS = "sampleapp.controllers.users.UserController"


def health():
    return {"status": "ok"}


def home():
    return "<h1>Home</h1>"


CLEAN = [
    RouteRecord.define("api/v1/posts", ["GET", "HEAD"], f"{POSTS}@index", ["api", "throttle:api"], name="posts.index"),
    RouteRecord.define("api/v1/posts", "POST", f"{POSTS}@store", ["auth:sanctum", "throttle:10,1"], name="posts.store"),
    RouteRecord.define("api/v1/posts/{post}", "GET", f"{POSTS}@show", ["api"], name="posts.show"),
    RouteRecord.define("api/v1/posts/{post}", "DELETE", f"{POSTS}@destroy", ["auth:sanctum"]),
    {"uri": "api/v2/users/{user}", "methods": "GET", "handler": f"{USERS}@show", "middleware": ["jwt.auth", "cors"]},
    ("api/v1/users/{user_id}/legacy", "GET", f"{USERS}@legacy"),
    RouteRecord.define(
        "api/webhooks/stripe",
        "POST",
        "sampleapp.controllers.webhooks.StripeWebhookController@handle",
        ["throttle:webhook", "verify.signature"],
    ),
    RouteRecord.define("api/health", "GET", health),
    RouteRecord.define("home", "GET", home),
]

BROKEN = [
    RouteRecord.define("api/v1/posts/{post}/comments", "GET", "sampleapp.controllers.comments.CommentController@index", ["api"]),
    RouteRecord.define("api/v1/posts/{post}/publish", "POST", f"{POSTS}@publish", ["auth:sanctum"]),
    RouteRecord.define("api/v1/reports/{report_id}", "GET", "sampleapp.controllers.reports.ReportController@show"),
    RouteRecord.define("api/v1/archive", "GET", POSTS),
]

ROUTES = CLEAN + BROKEN


def clean_routes() -> list[RouteRecord]:
    return list(CLEAN)
