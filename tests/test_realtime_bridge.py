"""Tests for the handshake, frame gate, broker and realtime publisher."""

from __future__ import annotations

import json
import threading
from datetime import timedelta

import anyio
import pytest

from app.domain.entities import InvalidSessionTransition, SessionContext, SessionState
from app.infrastructure.notifications import (
    ConnectedSessionRegistry,
    RealtimeNotificationService,
    SimpleBroker,
)
from app.infrastructure.notifications.manager import resolve_user_destination
from app.infrastructure.notifications.stomp import StompFrame
from app.infrastructure.security import create_access_token
from app.interfaces.realtime import (
    ConnectionClosed,
    HandshakeInterceptor,
    MessageRouter,
    StompChannelInterceptor,
    StompConnection,
)


class CollectingSubscriber:
    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        self.frames: list[StompFrame] = []

    def deliver(self, frame: StompFrame) -> None:
        self.frames.append(frame)

    def payloads(self) -> list[dict]:
        return [json.loads(frame.body) for frame in self.frames]


class BrokenSubscriber(CollectingSubscriber):
    def deliver(self, frame: StompFrame) -> None:
        raise ConnectionResetError("socket closed")


def _accepted_context(username: str = "alice", user_id: str = "7") -> SessionContext:
    context = SessionContext()
    HandshakeInterceptor(token_verifier=lambda token: username).before_handshake(
        {"token": "opaque", "userId": user_id}, context
    )
    return context


# Handshake -----------------------------------------------------------------


def test_handshake_without_token_is_rejected():
    context = SessionContext()

    accepted = HandshakeInterceptor().before_handshake({"userId": "7"}, context)

    assert accepted is False
    assert context.state is SessionState.HANDSHAKE_REJECTED
    assert context.attributes == {}


@pytest.mark.parametrize(
    "token",
    [
        "not-a-jwt",
        create_access_token({"sub": "alice"}, expires_delta=timedelta(minutes=-5)),
        create_access_token({"role": "patient"}),
    ],
)
def test_handshake_with_unverifiable_token_is_rejected(token):
    context = SessionContext()

    accepted = HandshakeInterceptor().before_handshake({"token": token}, context)

    assert accepted is False
    assert context.state is SessionState.HANDSHAKE_REJECTED
    assert context.attributes == {}


def test_handshake_with_tampered_signature_is_rejected():
    token = create_access_token({"sub": "alice"})
    header, payload, signature = token.split(".")
    tampered = ".".join([header, payload, signature[::-1]])

    assert HandshakeInterceptor().before_handshake({"token": tampered}, SessionContext()) is False


def test_handshake_with_valid_token_stores_attributes():
    token = create_access_token({"sub": "alice"})
    context = SessionContext()

    accepted = HandshakeInterceptor().before_handshake(
        {"token": token, "userId": "7"}, context
    )

    assert accepted is True
    assert context.state is SessionState.HANDSHAKE_ACCEPTED
    assert context.attributes == {"token": token, "username": "alice", "userId": "7"}


def test_verifier_crash_is_a_rejection():
    def verifier(token):
        raise RuntimeError("auth service unavailable")

    context = SessionContext()

    assert HandshakeInterceptor(verifier).before_handshake({"token": "t"}, context) is False
    assert context.state is SessionState.HANDSHAKE_REJECTED


# Frame gate ----------------------------------------------------------------


def test_connect_without_username_is_suppressed():
    context = SessionContext()
    context.advance(SessionState.HANDSHAKE_ACCEPTED)

    result = StompChannelInterceptor().pre_send(StompFrame("CONNECT"), context)

    assert result is None
    assert context.principal is None
    assert context.state is SessionState.DISCONNECTED


def test_connect_with_username_attaches_principal():
    context = _accepted_context()
    frame = StompFrame("CONNECT", {"accept-version": "1.2"})

    result = StompChannelInterceptor().pre_send(frame, context)

    assert result is frame
    assert context.state is SessionState.FRAME_AUTHENTICATED
    assert context.principal.name == "alice"
    assert context.principal.user_id == "7"
    assert context.principal.authorities == ("ROLE_USER",)


def test_frames_before_connect_are_suppressed():
    context = _accepted_context()
    frame = StompFrame("SUBSCRIBE", {"id": "0", "destination": "/topic/notifications"})

    assert StompChannelInterceptor().pre_send(frame, context) is None


def test_frames_after_connect_pass_through_unchanged():
    interceptor = StompChannelInterceptor()
    context = _accepted_context()
    interceptor.pre_send(StompFrame("CONNECT"), context)
    frame = StompFrame("SEND", {"destination": "/app/ping"}, "{}")

    assert interceptor.pre_send(frame, context) is frame


def test_session_state_machine_rejects_skipped_steps():
    context = SessionContext()

    with pytest.raises(InvalidSessionTransition):
        context.advance(SessionState.ACTIVE)


# Registry and broker ------------------------------------------------------


def test_registry_is_safe_under_concurrent_updates():
    registry = ConnectedSessionRegistry()

    def churn(prefix: str) -> None:
        for index in range(500):
            registry.add(f"{prefix}-{index}")
        for index in range(0, 500, 2):
            registry.remove(f"{prefix}-{index}")

    threads = [threading.Thread(target=churn, args=(f"t{n}",)) for n in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert registry.count() == 8 * 250
    assert "t0-1" in registry
    assert "t0-0" not in registry


@pytest.mark.parametrize(
    ("destination", "user_id", "expected"),
    [
        ("/user/queue/notifications", "7", "/user/7/queue/notifications"),
        ("/user/topic/results", "7", "/user/7/topic/results"),
        ("/user/7/topic/results", "7", "/user/7/topic/results"),
        ("/user/queue/notifications", None, "/user/queue/notifications"),
        ("/topic/notifications", "7", "/topic/notifications"),
    ],
)
def test_user_destination_resolution(destination, user_id, expected):
    assert resolve_user_destination(destination, user_id) == expected


def test_broker_fans_out_to_matching_subscriptions():
    broker = SimpleBroker()
    first, second = CollectingSubscriber("a"), CollectingSubscriber("b")
    broker.subscribe(first, "sub-0", "/topic/notifications")
    broker.subscribe(second, "sub-9", "/topic/notifications")
    broker.subscribe(second, "sub-1", "/topic/other")

    delivered = broker.publish("/topic/notifications", {"hello": "world"})

    assert delivered == 2
    assert first.payloads() == [{"hello": "world"}]
    [frame] = second.frames
    assert frame.command == "MESSAGE"
    assert frame.headers["subscription"] == "sub-9"
    assert frame.headers["destination"] == "/topic/notifications"


def test_broker_drops_broken_subscribers():
    broker = SimpleBroker()
    broker.subscribe(BrokenSubscriber("dead"), "sub-0", "/topic/a")
    broker.subscribe(CollectingSubscriber("alive"), "sub-0", "/topic/a")

    assert broker.publish("/topic/a", {}) == 1
    assert broker.subscriber_count("/topic/a") == 1


def test_unsubscribe_and_remove_session():
    broker = SimpleBroker()
    subscriber = CollectingSubscriber("s")
    broker.subscribe(subscriber, "sub-0", "/topic/a")
    broker.subscribe(subscriber, "sub-1", "/topic/b")

    assert broker.unsubscribe("s", "sub-0") is True
    assert broker.unsubscribe("s", "sub-0") is False
    assert broker.remove_session("s") == 1
    assert broker.publish("/topic/b", {}) == 0


# Publisher ---------------------------------------------------------------


def test_publish_api_envelopes():
    broker = SimpleBroker()
    user_topic = CollectingSubscriber("u")
    broadcast = CollectingSubscriber("b")
    results = CollectingSubscriber("r")
    appointments = CollectingSubscriber("a")
    broker.subscribe(user_topic, "0", "/user/topic/notifications", user_id="7")
    broker.subscribe(broadcast, "0", "/topic/notifications")
    broker.subscribe(results, "0", "/user/topic/results", user_id="7")
    broker.subscribe(appointments, "0", "/user/topic/appointments", user_id="7")
    service = RealtimeNotificationService(broker)

    assert service.notify_user(7, "Hi", "Private", "info") is True
    assert service.broadcast("Maintenance", "Tonight", "system") is True
    assert service.notify_result_ready(7, {"resultId": 1}) is True
    assert service.notify_new_appointment(7, {"appointmentId": 3}) is True
    assert service.notify_appointment_status_changed(7, "CONFIRMED", 3) is True
    assert service.send_custom_event(7, "CHAT_MESSAGE", {"text": "hey"}) is True

    [private, custom] = user_topic.payloads()
    assert private["event"] == "user_notification"
    assert private["title"] == "Hi"
    assert private["type"] == "info"
    assert custom["event"] == "CHAT_MESSAGE"
    assert custom["data"] == {"text": "hey"}
    assert broadcast.payloads()[0]["event"] == "broadcast"
    [ready] = results.payloads()
    assert ready["event"] == "TEST_RESULT_READY"
    assert ready["data"] == {"resultId": 1}
    assert ready["message"] == "Your test results are ready"
    assert ready["timestamp"]
    new, changed = appointments.payloads()
    assert new["event"] == "NEW_APPOINTMENT"
    assert changed == {
        "event": "APPOINTMENT_STATUS_CHANGE",
        "appointmentId": 3,
        "status": "CONFIRMED",
        "message": "Appointment status changed to: CONFIRMED",
        "timestamp": changed["timestamp"],
    }


def test_publish_failure_is_reported_not_raised(caplog):
    class FailingBroker:
        def publish(self, destination, payload):
            raise RuntimeError("broker offline")

    service = RealtimeNotificationService(FailingBroker())

    with caplog.at_level("ERROR"):
        assert service.notify_user(7, "Hi", "There", "info") is False
        assert service.broadcast("Hi", "All", "info") is False

    assert "broker offline" in caplog.text


# Connection --------------------------------------------------------------


class _DeadSocket:
    """Websocket whose writes fail while reads stay open."""

    def __init__(self, frames: list[str]) -> None:
        self._frames = list(frames)

    async def receive(self) -> dict:
        if self._frames:
            return {"type": "websocket.receive", "text": self._frames.pop(0)}
        await anyio.sleep_forever()

    async def send_text(self, data: str) -> None:
        raise RuntimeError("socket gone")

    async def close(self, code: int = 1000) -> None:
        raise RuntimeError("socket gone")


def test_failed_write_ends_the_session():
    registry = ConnectedSessionRegistry()
    broker = SimpleBroker()
    context = _accepted_context()
    socket = _DeadSocket([StompFrame("CONNECT", {"accept-version": "1.2"}).serialize()])

    async def scenario() -> StompConnection:
        connection = StompConnection(
            socket,
            context,
            interceptor=StompChannelInterceptor(),
            broker=broker,
            registry=registry,
            router=MessageRouter(),
        )
        with anyio.fail_after(5):
            await connection.run()
        return connection

    connection = anyio.run(scenario)

    assert registry.count() == 0
    assert context.state is SessionState.DISCONNECTED
    with pytest.raises(ConnectionClosed):
        connection.deliver(StompFrame("MESSAGE", {"destination": "/topic/a"}))
