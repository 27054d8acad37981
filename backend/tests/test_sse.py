from lostfound.modules.notifications import bus
from lostfound.modules.sse import event_stream


def test_subscribes_only_once_iterated():
    ch = bus.user_channel(11)
    frames = event_stream(ch, event_name="notification")
    assert bus.subscriber_count(ch) == 0

    assert next(frames) == ": connected\n\n"
    assert bus.subscriber_count(ch) == 1

    bus.publish(ch, {"type": "notification", "id": 5})
    assert next(frames) == 'event: notification\ndata: {"type": "notification", "id": 5}\n\n'

    frames.close()
    assert bus.subscriber_count(ch) == 0


def test_unstarted_stream_leaves_no_subscriber():
    ch = bus.conversation_channel("chat_gone")
    frames = event_stream(ch)
    frames.close()
    assert bus.subscriber_count(ch) == 0


def test_event_name_defaults_to_event_type():
    ch = bus.conversation_channel("chat_live")
    frames = event_stream(ch)
    next(frames)
    bus.publish(ch, {"type": "user_typing", "data": {}})
    assert next(frames).startswith("event: user_typing\n")
    frames.close()
