import threading

from cluster.layout import LayoutDispatcher


class Sink:
    def __init__(self):
        self.delivered = []
        self.event = threading.Event()

    def __call__(self, generation, positions):
        self.delivered.append((generation, positions))
        self.event.set()


def test_ack_delivers_pending_positions():
    sink = Sink()
    dispatcher = LayoutDispatcher(sink, fallback_delay=None)

    gen = dispatcher.schedule({"a": (1.0, 2.0)})

    assert gen == 1
    assert dispatcher.pending == {"a": (1.0, 2.0)}
    assert sink.delivered == []
    assert dispatcher.acknowledge(gen) is True
    assert sink.delivered == [(1, {"a": (1.0, 2.0)})]
    assert dispatcher.pending is None


def test_duplicate_ack_is_ignored():
    sink = Sink()
    dispatcher = LayoutDispatcher(sink, fallback_delay=None)
    gen = dispatcher.schedule({"a": (0.0, 0.0)})
    dispatcher.acknowledge(gen)
    assert dispatcher.acknowledge(gen) is False
    assert len(sink.delivered) == 1


def test_newer_schedule_supersedes_older():
    sink = Sink()
    dispatcher = LayoutDispatcher(sink, fallback_delay=None)
    old = dispatcher.schedule({"a": (0.0, 0.0)})
    new = dispatcher.schedule({"a": (5.0, 5.0)})

    assert dispatcher.acknowledge(old) is False
    assert dispatcher.acknowledge(new) is True
    assert sink.delivered == [(2, {"a": (5.0, 5.0)})]


def test_cancel_drops_pending():
    sink = Sink()
    dispatcher = LayoutDispatcher(sink, fallback_delay=None)
    gen = dispatcher.schedule({"a": (0.0, 0.0)})
    dispatcher.cancel()
    assert dispatcher.acknowledge(gen) is False
    assert sink.delivered == []


def test_fallback_timer_flushes_without_ack():
    sink = Sink()
    dispatcher = LayoutDispatcher(sink, fallback_delay=0.01)

    dispatcher.schedule({"a": (3.0, 4.0)})

    assert sink.event.wait(timeout=2.0)
    assert sink.delivered == [(1, {"a": (3.0, 4.0)})]
    assert dispatcher.acknowledge(1) is False
