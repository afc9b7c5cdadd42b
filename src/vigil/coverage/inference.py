"""Infer which backend services a trace should have exercised.

The rules are fixed and order-independent: the ingress service is
always expected, the session discovery tool pulls in the auth service,
and every call carrying a known ``platform`` argument pulls in that
platform's client service.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence

from vigil.models.trace import CapturedToolCall, LogEvent

INGRESS_SERVICE = "fantasy-mcp"
AUTH_SERVICE = "auth-worker"
SESSION_TOOL = "get_user_session"

# platform argument value -> dedicated backend service
PLATFORM_SERVICES: dict[str, str] = {
    "espn": "espn-client",
    "yahoo": "yahoo-client",
    "sleeper": "sleeper-client",
}

SERVICE_NAMES: tuple[str, ...] = (
    INGRESS_SERVICE,
    *PLATFORM_SERVICES.values(),
    AUTH_SERVICE,
)


def infer_expected_services(tool_calls: Sequence[CapturedToolCall]) -> list[str]:
    """Return the sorted set of services the tool calls should have touched.

    Calls whose arguments are not a mapping, or whose platform is unknown,
    contribute nothing beyond the ingress service.
    """
    expected = {INGRESS_SERVICE}

    for call in tool_calls:
        if call.tool_name == SESSION_TOOL:
            expected.add(AUTH_SERVICE)

        if not isinstance(call.args, Mapping):
            continue
        platform = call.args.get("platform")
        if isinstance(platform, str) and platform in PLATFORM_SERVICES:
            expected.add(PLATFORM_SERVICES[platform])

    return sorted(expected)


def actual_services(server_logs: Mapping[str, Sequence[LogEvent]] | None) -> list[str]:
    """Services with at least one captured log event, sorted."""
    return sorted(name for name, events in (server_logs or {}).items() if events)


def missing_services(expected: Iterable[str], actual: Iterable[str]) -> list[str]:
    """Expected services absent from the actual set, sorted."""
    actual_set = set(actual)
    return sorted(name for name in set(expected) if name not in actual_set)
