"""
Response hardening for the JSON API.

GradTrack never renders HTML, so every response gets a deny-all CSP and
framing is refused outright. HSTS is only sent outside debug mode so local
HTTP development keeps working in browsers.
"""

_JSON_API_HEADERS = {
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Cache-Control": "no-store",
}

_HSTS = "max-age=31536000; includeSubDomains"


def init_security_headers(app):
    """Attach the hardening headers to every response."""
    send_hsts = not app.debug

    @app.after_request
    def _harden_response(response):
        for header, value in _JSON_API_HEADERS.items():
            response.headers.setdefault(header, value)
        if send_hsts:
            response.headers.setdefault("Strict-Transport-Security", _HSTS)
        response.headers.pop("Server", None)
        return response
