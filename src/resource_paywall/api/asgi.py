"""ASGI entrypoint for the resource paywall API."""

from resource_paywall.api.app import create_app
from resource_paywall.containers import build_container

app = create_app(build_container())
