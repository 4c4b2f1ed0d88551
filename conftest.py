import pytest

from discovery.factories import AdapterResponseFactory


class StubFetcher:
    """In-memory fetcher that replays canned results and records calls."""

    def __init__(self, name, results=None, available=True):
        self.name = name
        self.results = list(results or [AdapterResponseFactory(adapter=name)])
        self.is_available = available
        self.calls = []

    def available(self):
        return self.is_available

    def fetch(self, url, options):
        self.calls.append((url, options))
        if len(self.results) > 1:
            return self.results.pop(0)
        return self.results[0]


@pytest.fixture(autouse=True)
def clean_fetch_env(monkeypatch):
    """Keep real credentials and strategy overrides out of the tests."""
    for name in (
        "ZYTE_API_KEY",
        "CRAWLBASE_JS_API_KEY",
        "CRAWLBASE_NORMAL_API_KEY",
        "FETCH_STRATEGIES",
        "FETCH_EVENTS_CHANNEL",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def make_fetcher():
    return StubFetcher


@pytest.fixture
def normal_html():
    return """<!DOCTYPE html>
<html>
<head><title>Jazz Night at the Blue Room</title></head>
<body>
  <h1>Jazz Night</h1>
  <p>Doors open at 8pm. Tickets available at the venue.</p>
</body>
</html>
"""


@pytest.fixture
def cloudflare_challenge_html():
    return """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <title>Just a moment...</title>
</head>
<body>
  <div class="cf-browser-verification">
    <h1>Checking your browser before accessing the site.</h1>
    <p>This process is automatic. Your browser will redirect shortly.</p>
    <div id="cf-spinner"><div id="challenge-platform"></div></div>
    <noscript>Please enable JavaScript to continue.</noscript>
  </div>
  <script>
    var _cf_chl_opt = {chlApiUrl: "/cdn-cgi/challenge-platform"};
  </script>
</body>
</html>
"""


@pytest.fixture
def cloudflare_error_html():
    return """<!DOCTYPE html>
<html>
<head><title>Access Denied | Cloudflare</title></head>
<body>
  <h1>Access Denied</h1>
  <p>The owner of this website has banned your access based on your browser's signature.</p>
  <p>Cloudflare Ray ID: 8a1234567890abcd</p>
</body>
</html>
"""


@pytest.fixture
def recaptcha_html():
    return """<!DOCTYPE html>
<html>
<head>
  <title>Verification Required</title>
  <script src="https://www.google.com/recaptcha/api.js" async defer></script>
</head>
<body>
  <h1>Please verify you are human</h1>
  <form><div class="g-recaptcha" data-sitekey="abc123"></div></form>
</body>
</html>
"""


@pytest.fixture
def hcaptcha_html():
    return """<!DOCTYPE html>
<html>
<head>
  <title>Human Verification</title>
  <script src="https://hcaptcha.com/1/api.js" async defer></script>
</head>
<body>
  <h1>Prove you're not a robot</h1>
  <div class="h-captcha" data-sitekey="xyz789"></div>
</body>
</html>
"""
