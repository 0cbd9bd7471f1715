"""Medical notification core.

Preference-gated delivery over push, email and a STOMP websocket bridge.
"""
