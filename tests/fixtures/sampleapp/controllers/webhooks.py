from sampleapp.http import Request, json_response


class StripeWebhookController:
    def handle(self, request: Request) -> dict:
        return json_response({"received": True}, status=202)
