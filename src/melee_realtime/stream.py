"""Minimal synchronous publish/subscribe primitives.

``Subject`` is the only source of values. ``Observable.filter``,
``Observable.map`` and ``merge`` build lazy views over it: nothing is
attached upstream until someone subscribes, and unsubscribing a derived
subscription detaches every upstream subscription it created.

Delivery is synchronous and ordered: ``Subject.next`` calls each observer
in subscription order before returning. Exceptions raised by an observer
propagate to whoever called ``next``.

Typical usage:
    source = Subject()
    with source.filter(lambda v: v > 1).subscribe(print):
        source.next(1)   # dropped
        source.next(2)   # printed
"""

import threading
from typing import Callable, Generic, TypeVar

T = TypeVar("T")
U = TypeVar("U")


class Subscription:
    """Handle for one observer attachment. Safe to unsubscribe twice."""

    def __init__(self, teardown: Callable[[], None] | None = None):
        self._teardowns = [teardown] if teardown is not None else []
        self.closed = False

    def add(self, teardown: Callable[[], None]) -> None:
        if self.closed:
            teardown()
        else:
            self._teardowns.append(teardown)

    def unsubscribe(self) -> None:
        if self.closed:
            return
        self.closed = True
        teardowns, self._teardowns = self._teardowns, []
        for teardown in teardowns:
            teardown()

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc) -> None:
        self.unsubscribe()


class _Observer(Generic[T]):
    def __init__(self, on_next: Callable[[T], None], on_complete: Callable[[], None] | None):
        self.on_next = on_next
        self.on_complete = on_complete


class Observable(Generic[T]):
    """A lazily subscribed stream of values."""

    def __init__(self, subscribe_fn: Callable[[_Observer], Subscription]):
        self._subscribe_fn = subscribe_fn

    def subscribe(
        self,
        on_next: Callable[[T], None],
        on_complete: Callable[[], None] | None = None,
    ) -> Subscription:
        return self._subscribe_fn(_Observer(on_next, on_complete))

    def filter(self, predicate: Callable[[T], bool]) -> "Observable[T]":
        def subscribe_fn(observer: _Observer) -> Subscription:
            def on_next(value):
                if predicate(value):
                    observer.on_next(value)
            return self.subscribe(on_next, observer.on_complete)
        return Observable(subscribe_fn)

    def map(self, fn: Callable[[T], U]) -> "Observable[U]":
        def subscribe_fn(observer: _Observer) -> Subscription:
            return self.subscribe(lambda value: observer.on_next(fn(value)), observer.on_complete)
        return Observable(subscribe_fn)


class Subject(Observable[T]):
    """Multicast source: every ``next`` goes to all current observers."""

    def __init__(self):
        super().__init__(self._attach)
        self._observers: list[_Observer] = []
        self._lock = threading.Lock()
        self.completed = False

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    def _attach(self, observer: _Observer) -> Subscription:
        with self._lock:
            if self.completed:
                if observer.on_complete is not None:
                    observer.on_complete()
                return Subscription()
            self._observers.append(observer)

        def detach():
            with self._lock:
                if observer in self._observers:
                    self._observers.remove(observer)

        return Subscription(detach)

    def next(self, value: T) -> None:
        with self._lock:
            if self.completed:
                return
            observers = list(self._observers)
        for observer in observers:
            # An earlier observer may have unsubscribed this one mid-dispatch
            if observer in self._observers:
                observer.on_next(value)

    def complete(self) -> None:
        with self._lock:
            if self.completed:
                return
            self.completed = True
            observers, self._observers = self._observers, []
        for observer in observers:
            if observer.on_complete is not None:
                observer.on_complete()

    def as_observable(self) -> Observable[T]:
        """Read-only view, so holders cannot publish."""
        return Observable(self._attach)


def merge(*sources: Observable[T]) -> Observable[T]:
    """Interleave several streams in arrival order.

    Completes once every source has completed. An empty merge never emits.
    """
    def subscribe_fn(observer: _Observer) -> Subscription:
        subscription = Subscription()
        remaining = [len(sources)]

        def on_complete():
            remaining[0] -= 1
            if remaining[0] == 0 and observer.on_complete is not None:
                observer.on_complete()

        for source in sources:
            inner = source.subscribe(observer.on_next, on_complete)
            subscription.add(inner.unsubscribe)
        return subscription

    return Observable(subscribe_fn)
