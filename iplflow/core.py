"""Graph topology and the shared flow settings used by the pipe components."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, List, Optional, Protocol


class TopoNode:
    """A graph node that carries a value and keeps its edges in attach order."""

    def __init__(self, value: Any = None) -> None:
        self.value = value
        self._edges: List[TopoEdge] = []

    def edges(self) -> List["TopoEdge"]:
        """All edges touching this node, in the order they were attached."""
        return list(self._edges)

    def in_edges(self) -> List["TopoEdge"]:
        """Edges that end at this node."""
        return [edge for edge in self._edges if edge.end_node is self]

    def out_edges(self) -> List["TopoEdge"]:
        """Edges that start at this node."""
        return [edge for edge in self._edges if edge.start_node is self]

    def _attach(self, edge: "TopoEdge") -> None:
        if edge not in self._edges:
            self._edges.append(edge)

    def _detach(self, edge: "TopoEdge") -> None:
        if edge in self._edges:
            self._edges.remove(edge)

    def __repr__(self) -> str:
        return f"TopoNode({self.value!r})"


class TopoEdge:
    """A directed graph edge between two optional nodes."""

    def __init__(self, value: Any = None) -> None:
        self.value = value
        self.start_node: Optional[TopoNode] = None
        self.end_node: Optional[TopoNode] = None

    def attach_nodes(self, start: Optional[TopoNode], end: Optional[TopoNode]) -> None:
        """Connect this edge from ``start`` to ``end``, dropping any earlier ends."""
        self.remove_nodes()
        self.start_node = start
        self.end_node = end
        if start is not None:
            start._attach(self)
        if end is not None:
            end._attach(self)

    def remove_nodes(self) -> None:
        """Detach this edge from both of its nodes."""
        for node in (self.start_node, self.end_node):
            if node is not None:
                node._detach(self)
        self.start_node = None
        self.end_node = None

    def __repr__(self) -> str:
        return f"TopoEdge({self.value!r})"


class EventTarget(Protocol):
    def process_event(self, notify: bool) -> None:
        ...


@dataclass
class PipeEvent:
    """A deferred flow event: a destination notify or a source request."""

    target: Any
    notify: bool

    def fire(self) -> None:
        self.target.process_event(self.notify)


@dataclass
class FlowSettings:
    """Mode flags and the event queue shared by every component of one network."""

    singlestep: int = 0
    eventqueueflag: int = 0
    animateflag: int = 0
    unitaryflag: int = 1
    showforkvals: bool = False
    nostats: bool = False
    cycle_count: int = 0
    lasttick: int = 0
    _events: Deque[PipeEvent] = field(default_factory=deque, repr=False)

    def __init__(self) -> None:
        self.singlestep = 0
        self.eventqueueflag = 0
        self.animateflag = 0
        self.unitaryflag = 1
        self.showforkvals = False
        self.nostats = False
        self.cycle_count = 0
        self.lasttick = 0
        self._events = deque()

    def __len__(self) -> int:
        return len(self._events)

    def enqueue(self, target: Any, notify: bool) -> PipeEvent:
        """Queue an event for ``target``; ``notify`` selects notify over request."""
        event = PipeEvent(target, bool(notify))
        self._events.append(event)
        return event

    def drain(self) -> List[PipeEvent]:
        """Remove and return every pending event without firing it."""
        events = list(self._events)
        self._events.clear()
        return events

    def tick(self) -> int:
        """Advance one tick, firing the events pending at its start.

        Events queued while firing wait for the next tick.  Returns the
        number of events fired.
        """
        self.lasttick += 1
        pending = self.drain()
        for event in pending:
            event.fire()
        return len(pending)