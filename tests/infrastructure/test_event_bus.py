import threading
from dataclasses import dataclass

from inkbook.events import Event, EventBus, ListEvent, PageMergedEvent


@dataclass(kw_only=True)
class _Ping(Event):
    value: int = 0


def test_publish_reaches_subscribers():
    bus = EventBus()
    received = []
    bus.subscribe(_Ping, received.append)
    bus.publish(_Ping(value=3))
    assert [event.value for event in received] == [3]


def test_base_class_subscription_sees_subclasses():
    bus = EventBus()
    received = []
    bus.subscribe(ListEvent, received.append)
    bus.publish(PageMergedEvent(list_name="customers", row_count=2))
    assert received[0].list_name == "customers"


def test_cancelled_subscription_stops_delivery():
    bus = EventBus()
    received = []
    sub = bus.subscribe(_Ping, received.append)
    sub.cancel()
    bus.publish(_Ping())
    assert received == []
    assert bus.handler_count(_Ping) == 0


def test_failing_handler_does_not_block_others():
    bus = EventBus()
    received = []

    def broken(event):
        raise RuntimeError("handler bug")

    bus.subscribe(_Ping, broken)
    bus.subscribe(_Ping, received.append)
    bus.publish(_Ping())
    assert len(received) == 1


def test_async_handlers_run_on_pool():
    bus = EventBus()
    done = threading.Event()
    threads = []

    def handler(event):
        threads.append(threading.current_thread().name)
        done.set()

    bus.subscribe(_Ping, handler, async_=True)
    bus.publish(_Ping())
    assert done.wait(2)
    assert threads[0].startswith("inkbook-events")
    bus.shutdown()


def test_publish_async_returns_futures():
    bus = EventBus()
    received = []
    bus.subscribe(_Ping, received.append)
    futures = bus.publish_async(_Ping(value=1))
    for future in futures:
        future.result(timeout=2)
    assert len(received) == 1
    bus.shutdown()
