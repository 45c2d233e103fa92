import logging

from facewatch.notify import EventDispatcher, IdentityAppeared, LoggingNotifier


def test_failing_listener_does_not_block_others(caplog):
    received = []

    def broken(event):
        raise RuntimeError("boom")

    dispatcher = EventDispatcher()
    dispatcher.subscribe(broken)
    dispatcher.subscribe(received.append)
    event = IdentityAppeared(name="Ann", distance=0.2, cycle_index=1)
    dispatcher.dispatch(event)

    assert received == [event]
    assert dispatcher.delivered == 1
    assert "failed for Ann" in caplog.text


def test_unsubscribe_and_toggle():
    received = []
    dispatcher = EventDispatcher()
    dispatcher.subscribe(received.append)
    dispatcher.set_enabled(False)
    dispatcher(IdentityAppeared(name="Ann", distance=0.2, cycle_index=1))
    dispatcher.set_enabled(True)
    dispatcher.unsubscribe(received.append)
    dispatcher(IdentityAppeared(name="Bob", distance=0.2, cycle_index=2))
    assert received == []
    assert dispatcher.suppressed == 1


def test_logging_notifier_message(caplog):
    with caplog.at_level(logging.INFO, logger="facewatch.notify"):
        LoggingNotifier()(IdentityAppeared(name="Ann", distance=0.25, cycle_index=3))
    assert "Ann has been detected by the camera." in caplog.text
