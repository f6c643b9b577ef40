"""eventforge execution core — handlers, router and event synthesis.

Contract-bound handlers validate inbound payloads against a versioned
contract before invoking per-version logic; open handlers accept any event
addressed to them; routers dispatch by event type to a registry of either.
All three expose the same ``EventHandler`` interface, so routers compose.
"""
