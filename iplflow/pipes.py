"""Pipe nodes and the connectors that carry values between them.

A pipe holds a small buffer of values.  Values move downstream through a
handshake: an occupied pipe raises the ``handout`` flag on each outgoing
connector, and every vacant downstream pipe copies the value across and
clears its flag.  Once all handshakes are cleared the upstream value is
dropped and the upstream pipe asks its own source for more.
"""

from __future__ import annotations

import copy
from typing import Any, Callable, Dict, List, Optional, Tuple

from iplflow.core import FlowSettings, TopoEdge, TopoNode

BLACK = "black"
BLUE = "blue"
RED = "red"
ORANGE = "orange"
GREEN = "green"

_HISTORY_LEN = 100


class PipeError(Exception):
    """Raised when a pipe operation cannot be carried out."""


class EmptyPipeError(PipeError, LookupError):
    """Raised when a value is taken from a pipe that holds none."""


class ConnComp:
    """A directed connector between two pipes, carrying the handshake flag."""

    def __init__(self, start_subnode: int = -1, end_subnode: int = -1) -> None:
        self.start_subnode = start_subnode
        self.end_subnode = end_subnode
        self.edge = TopoEdge(self)
        self.handout = False
        self.color: Optional[str] = None

    def _visible(self, node: Optional[TopoNode]) -> Optional["PipeComp"]:
        if node is None:
            return None
        pipe = node.value
        if not pipe.onscreen():
            pipe = pipe.invocomp()
        return pipe

    def node_start(self) -> Optional["PipeComp"]:
        """The pipe at the start, or its invocation when the pipe is internal."""
        return self._visible(self.edge.start_node)

    def node_end(self) -> Optional["PipeComp"]:
        """The pipe at the end, or its invocation when the pipe is internal."""
        return self._visible(self.edge.end_node)

    def __repr__(self) -> str:
        return f"ConnComp(handout={self.handout})"


def _format_value(value: Any) -> str:
    if isinstance(value, str):
        return f'"{value}"'
    return str(value)


class PipeComp:
    """A buffered node of a dataflow network."""

    is_pipes = False
    is_fork = False
    is_arbiter = False
    is_invo = False

    def __init__(
        self,
        name: Optional[str] = None,
        parent: Any = None,
        attrs: Optional[Dict[str, Any]] = None,
        settings: Optional[FlowSettings] = None,
    ) -> None:
        if settings is None:
            settings = getattr(parent, "settings", None)
        if settings is None:
            settings = FlowSettings()
        self.name = name
        self.parent = parent
        self.attrs: Dict[str, Any] = dict(attrs or {})
        self.settings = settings
        self.node = TopoNode(self)
        self.buff: List[Any] = []
        self._buffsize = 1
        self.handsout = 0
        self.text2 = ""
        self.color = BLUE
        self.current_outconn_color = BLACK
        self.sprite: Any = None
        self.pause_hook: Optional[Callable[["PipeComp"], None]] = None
        self._text2_reserved = False
        self._animated = False
        self._dst_notified = False
        self._src_requested = False
        self._delay = -1
        self.put_cnt = 0
        self._put_history: Optional[List[int]] = None

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"

    # buffer ---------------------------------------------------------------

    def buffsize(self) -> int:
        """Capacity of the buffer; -1 means unlimited."""
        return self._buffsize

    def set_buffsize(self, size: int) -> None:
        """Set the capacity, never below the number of values already held."""
        if len(self.buff) > size and size != -1:
            size = len(self.buff)
        self._buffsize = size

    def get_buff(self, index: int) -> Any:
        """Return the buffered value at ``index`` without removing it."""
        index = max(index, 0)
        if index >= len(self.buff):
            raise IndexError(f"pipe buffer has no entry {index}")
        return self.buff[index]

    def buffer_text(self) -> str:
        """The buffer contents as comma separated text, strings quoted."""
        return ",".join(_format_value(value) for value in self.buff)

    # occupancy ------------------------------------------------------------

    def _parent_pipes(self) -> Any:
        parent = self.parent
        if parent is not None and getattr(parent, "is_pipes", False):
            return parent
        return None

    def src_vacant(self) -> bool:
        """True when this pipe, and any enclosing composite, can accept a value."""
        if not self._src_vacant():
            return False
        parent = self._parent_pipes()
        return parent.src_vacant() if parent is not None else True

    def _src_vacant(self) -> bool:
        if self.sprite is not None:
            return False
        return self._buffsize < 0 or self._buffsize > len(self.buff)

    def dst_occupied(self) -> bool:
        """True when this pipe, and any enclosing composite, has a value ready."""
        if not self._dst_occupied():
            return False
        parent = self._parent_pipes()
        return parent is None or parent.dst_occupied()

    def _dst_occupied(self) -> bool:
        return len(self.buff) > 0

    # putting and getting ---------------------------------------------------

    def src_put(self, value: Any) -> bool:
        """Append ``value`` if there is room; return whether it was taken."""
        if not self.src_vacant():
            return False
        reserved = self._reserve_text2()
        self.buff.append(value)
        if self._put_history is not None:
            self._put_history[self.put_cnt % _HISTORY_LEN] = self.settings.cycle_count
            self.put_cnt += 1
        updated = self._update_and_pause()
        if reserved:
            self._unreserve_text2()
        if not updated and not self._animated and (reserved or self.settings.animateflag):
            self._update_text2()
            self._animated = True
        if reserved:
            self._animated = False
        return True

    def dst_get(self) -> Any:
        """Remove and return the oldest value.

        Raises PipeError when the pipe feeds output connectors, and
        EmptyPipeError when no value is ready.
        """
        if self.outconn_exists():
            raise PipeError("dst_get attempted on a pipe with output connectors")
        if not self.dst_occupied():
            raise EmptyPipeError("pipe holds no value")
        return self._dst_get()

    def _dst_get(self) -> Any:
        if not self.buff:
            raise EmptyPipeError("pipe holds no value")
        reserved = self._reserve_text2()
        value = self.buff.pop(0)
        updated = self._update_and_pause()
        if len(self.buff) < self._buffsize or self._buffsize == -1:
            self.src_request()
        if reserved:
            self._unreserve_text2()
        if not updated and not self._animated and (reserved or self.settings.animateflag):
            self._update_text2()
            self._animated = True
        if reserved:
            self._animated = False
        return value

    # remote transfer ------------------------------------------------------

    def rdst_to_src(self, conn: ConnComp, rdst: "PipeComp") -> None:
        """Move the value waiting in upstream ``rdst`` across ``conn`` into this pipe."""
        if not self.src_vacant():
            return
        value = self.rdst_cpy(rdst)
        self.rdst_clr_handshake(conn, rdst)
        reserved = not rdst.handsout and rdst._reserve_text2()
        flag = self.src_put(value)
        self.rdst_clr_val(rdst)
        self.rdst_chk(rdst)
        self._finish_text2(rdst, reserved)
        if flag:
            self.dst_notify()

    def _finish_text2(self, target: "PipeComp", reserved: bool) -> None:
        animate = self.settings.animateflag
        if not (reserved or animate):
            return
        if reserved:
            target._unreserve_text2()
        if not target._animated:
            target._update_text2()
        if animate and not target._animated:
            target._animated = True
        if reserved:
            target._animated = False

    def rdst_cpy_clr(self, conn: ConnComp, rdst: "PipeComp") -> Any:
        """Copy the upstream value, then clear its handshake and value."""
        value = self.rdst_cpy(rdst)
        self.rdst_clr_handshake(conn, rdst)
        self.rdst_clr_val(rdst)
        return value

    def rdst_cpy(self, rdst: "PipeComp") -> Any:
        """A copy of the oldest value held upstream."""
        if not rdst.buff:
            raise EmptyPipeError("upstream pipe holds no value")
        return copy.copy(rdst.buff[0])

    def rdst_clr_handshake(self, conn: ConnComp, rdst: "PipeComp") -> None:
        """Clear the handshake on ``conn`` and count it off upstream."""
        conn.handout = False
        rdst.handsout -= 1

    def rdst_clr_val(self, rdst: "PipeComp") -> None:
        """Drop the upstream value once every handshake is cleared."""
        if not rdst.handsout and rdst.buff:
            rdst.buff.pop(0)
            rdst._update_and_pause()

    def rdst_chk(self, rdst: "PipeComp") -> None:
        """Once every handshake is cleared, set upstream up for its next value."""
        if rdst.handsout:
            return
        if rdst.buff:
            rdst.dst_notify()
        if len(rdst.buff) < rdst.buffsize() or rdst.buffsize() == -1:
            rdst.src_request()

    # requests and notifications ---------------------------------------------

    def src_request(self) -> None:
        """Ask upstream for a value, now or through the event queue."""
        if self._src_requested or not self.src_vacant():
            return
        parent = self._parent_pipes()
        if parent is not None:
            parent.src_request()
        elif not self.settings.eventqueueflag:
            self._src_request()
        else:
            self._src_requested = True
            self.settings.enqueue(self, False)

    def _src_request(self) -> None:
        for edge in self.node.in_edges():
            conn = edge.value
            if conn.handout:
                self.rdst_to_src(conn, edge.start_node.value)
            break

    def src_ready(self) -> bool:
        """True when a value is waiting on the input connector and there is room."""
        for edge in self.node.in_edges():
            return bool(edge.value.handout) and self.src_vacant()
        return False

    def dst_notify(self) -> None:
        """Offer the buffered value downstream, now or through the event queue."""
        if self._dst_notified or not self.dst_occupied():
            return
        parent = self._parent_pipes()
        if parent is not None:
            parent.dst_notify()
        elif not self.settings.eventqueueflag:
            self._dst_notify()
        else:
            self._dst_notified = True
            self.settings.enqueue(self, True)

    def _dst_notify(self) -> None:
        out_edges = self.node.out_edges()
        for edge in out_edges:
            conn = edge.value
            if not conn.handout:
                conn.handout = True
                self.handsout += 1
        for edge in out_edges:
            edge.end_node.value.rdst_to_src(edge.value, self)

    def dst_ready(self) -> bool:
        """True when every downstream pipe would accept the value."""
        for edge in self.node.out_edges():
            target = edge.end_node.value
            if target.is_arbiter:
                if not target.arbiter_vacant(self):
                    return False
            elif not target.src_vacant():
                return False
        return True

    def process_event(self, notify: bool) -> None:
        """Run a queued notify or request."""
        if notify:
            self._dst_notified = False
            self._dst_notify()
        else:
            self._src_requested = False
            self._src_request()

    # display state ---------------------------------------------------------

    def _reserve_text2(self) -> bool:
        if self._text2_reserved:
            return False
        self._text2_reserved = True
        return True

    def _unreserve_text2(self) -> None:
        self._text2_reserved = False

    def _update_and_pause(self) -> int:
        step = self.settings.singlestep
        if not step:
            return 0
        self._update_text2()
        if step > 1:
            return 1
        if self.pause_hook is not None:
            self.pause_hook(self)
        return 1

    def _update_text2(self) -> None:
        if not self.onscreen():
            self.parent.update_parent_text(None, self)
            return
        text = self.buffer_text()
        self.text2 = text
        if self.sprite is not None:
            return
        if text:
            if self._put_history is not None:
                rate = self.put_rate()
                if rate < 0.25:
                    self.color = RED
                elif rate < 0.49999:
                    self.color = ORANGE
                else:
                    self.color = GREEN
            else:
                self.color = RED
            self._color_outconn(RED)
        elif not self.settings.animateflag or not self.settings.eventqueueflag:
            if self._put_history is None:
                self.color = BLUE
            self._color_outconn(BLUE)

    def _color_outconn(self, color: str) -> None:
        for edge in self.node.out_edges():
            edge.value.color = color
            end = edge.end_node
            nxt = end.value if end is not None else None
            if nxt is not None and nxt.is_fork:
                nxt._color_outconn(color)
        self.current_outconn_color = color

    # topology -------------------------------------------------------------

    def onscreen(self) -> bool:
        """False when this pipe lives inside a composite of pipes."""
        return self._parent_pipes() is None

    def invocomp(self) -> Any:
        """The invocation that owns this pipe, if any."""
        parent = self._parent_pipes()
        return parent.invocomp() if parent is not None else None

    def inconn_exists(self) -> bool:
        return bool(self.node.in_edges())

    def outconn_exists(self) -> bool:
        return bool(self.node.out_edges())

    def nsrc(self) -> int:
        """Number of input connectors."""
        return len(self.node.in_edges())

    def ndst(self) -> int:
        """Number of output connectors."""
        return len(self.node.out_edges())

    def find_value(self, name: str) -> Any:
        """The attribute called ``name``, or None."""
        return self.attrs.get(name)

    def delay(self) -> int:
        """The ``delay`` attribute, read once and cached; 0 when absent."""
        if self._delay < 0:
            value = self.find_value("delay")
            self._delay = int(value) if value else 0
        return self._delay

    def remote_srccomp(self, index: int, lowlevel: bool = False) -> Tuple[Optional["PipeComp"], int]:
        """The pipe feeding input ``index`` and the order of its output connector.

        Pipes inside an invocation stand for the invocation unless
        ``lowlevel``; forks are looked through.  Returns (None, -1) when
        there is no such input.
        """
        for count, edge in enumerate(self.node.in_edges()):
            if count != index:
                continue
            start = edge.start_node.value
            order = start.node.out_edges().index(edge)
            if start.invocomp() is not None:
                return (start if lowlevel else start.invocomp()), order
            if start.is_fork:
                return start.remote_srccomp(0)
            return start, order
        return None, -1

    def remote_dstcomp(self, index: int, lowlevel: bool = False) -> Tuple[Optional["PipeComp"], int]:
        """The pipe fed by output ``index`` and the order of its input connector.

        Returns (None, -1) when there is no such output.
        """
        for count, edge in enumerate(self.node.out_edges()):
            if count != index:
                continue
            end = edge.end_node.value
            order = end.node.in_edges().index(edge)
            if end.invocomp() is not None:
                return (end if lowlevel else end.invocomp()), order
            if end.is_fork:
                return end.remote_dstcomp(index)
            return end, order
        return None, -1

    def srcconn(self, index: int) -> Optional[ConnComp]:
        """The input connector at ``index``, or None."""
        edges = self.node.in_edges()
        return edges[index].value if 0 <= index < len(edges) else None

    def dstconn(self, index: int) -> Optional[ConnComp]:
        """The output connector at ``index``, or None."""
        edges = self.node.out_edges()
        return edges[index].value if 0 <= index < len(edges) else None

    def put_rate(self) -> float:
        """Puts per cycle over the last hundred puts; starts recording on first call."""
        if self._put_history is None:
            self._put_history = [0] * _HISTORY_LEN
        slot = self.put_cnt % _HISTORY_LEN
        now = self._put_history[slot - 1 if slot else _HISTORY_LEN - 1]
        before = self._put_history[slot]
        if now == before:
            return 0.0
        return min(_HISTORY_LEN, self.put_cnt) / (now - before)


def connect(upstream: PipeComp, downstream: PipeComp) -> ConnComp:
    """Create a connector from ``upstream`` to ``downstream``."""
    conn = ConnComp()
    conn.edge.attach_nodes(upstream.node, downstream.node)
    return conn