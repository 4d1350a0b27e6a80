"""Pipes with special flow rules: arbiters that merge two inputs, forks that fan out."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from iplflow.core import FlowSettings, TopoEdge
from iplflow.pipes import ConnComp, PipeComp


class ArbiterComp(PipeComp):
    """Merges two input streams into one, alternating fairly between them.

    The buffer holds two values.  When it is empty any input is taken;
    when it holds one value only the other input is taken.
    """

    is_arbiter = True

    def __init__(
        self,
        name: Optional[str] = None,
        parent: Any = None,
        attrs: Optional[Dict[str, Any]] = None,
        settings: Optional[FlowSettings] = None,
    ) -> None:
        super().__init__(name, parent, attrs, settings)
        self.set_buffsize(2)
        self._lastinput = 0

    @property
    def lastinput(self) -> int:
        """Ordinal of the input the most recent value was taken from."""
        return self._lastinput

    def _rdstid(self, rdst: PipeComp) -> int:
        in_edges = self.node.in_edges()
        for index, edge in enumerate(in_edges):
            if edge.start_node is rdst.node:
                return index
        return len(in_edges)

    def _two_inputs(self) -> tuple[Optional[TopoEdge], Optional[TopoEdge]]:
        in_edges = self.node.in_edges()
        first = in_edges[0] if in_edges else None
        second = in_edges[-1] if len(in_edges) > 1 else None
        return first, second

    def rdst_to_src(self, conn: ConnComp, rdst: PipeComp) -> None:
        """Take the upstream value only if it keeps the two inputs alternating."""
        if not self.src_vacant():
            return
        rdstid = self._rdstid(rdst)
        reserved = False
        if not self.buff:
            self._lastinput = rdstid
            reserved = self._reserve_text2()
            PipeComp.rdst_to_src(self, conn, rdst)
        elif len(self.buff) == 1 and self._lastinput != rdstid:
            self._lastinput = int(not self._lastinput)
            reserved = self._reserve_text2()
            PipeComp.rdst_to_src(self, conn, rdst)
        self._finish_text2(self, reserved)

    def src_request(self) -> None:
        """Ask the inputs for a value, now or through the event queue."""
        if self._src_requested or not self.src_vacant():
            return
        if not self.settings.eventqueueflag:
            self._src_request()
        else:
            self._src_requested = True
            self.settings.enqueue(self, False)

    def _src_request(self) -> None:
        edge0, edge1 = self._two_inputs()
        ready0 = edge0 is not None and bool(edge0.value.handout)
        ready1 = edge1 is not None and bool(edge1.value.handout)
        if not ready0 and not ready1:
            return
        count = len(self.buff)
        if ready0 and ready1 and count < 2:
            self._lastinput = int(not self._lastinput)
        elif ready0:
            if (self._lastinput == 0 and count == 1) or count == 2:
                return
            self._lastinput = 0
        else:
            if (self._lastinput == 1 and count == 1) or count == 2:
                return
            self._lastinput = 1
        chosen = edge1 if self._lastinput else edge0
        reserved = self._reserve_text2()
        PipeComp.rdst_to_src(self, chosen.value, chosen.start_node.value)
        self._finish_text2(self, reserved)

    def src_ready(self) -> bool:
        """True when either input has a value waiting and there is room."""
        edge0, edge1 = self._two_inputs()
        ready0 = edge0 is not None and bool(edge0.value.handout)
        ready1 = edge1 is not None and bool(edge1.value.handout)
        if not ready0 and not ready1:
            return False
        return self.src_vacant()

    def arbiter_vacant(self, rdst: PipeComp) -> bool:
        """True when a value from upstream ``rdst`` would be taken."""
        rdstid = self._rdstid(rdst)
        if not self.buff:
            return True
        return len(self.buff) == 1 and self._lastinput != rdstid

    def dst_notify(self) -> None:
        """Offer the buffered value downstream, now or through the event queue."""
        if self._dst_notified or not self.dst_occupied():
            return
        if not self.settings.eventqueueflag:
            self._dst_notify()
        else:
            self._dst_notified = True
            self.settings.enqueue(self, True)

    def _dst_notify(self) -> None:
        if self.handsout > 0:
            return
        super()._dst_notify()

    def dst_ready(self) -> bool:
        """True when no handshake is outstanding and every output would accept."""
        if self.handsout > 0:
            return False
        return super().dst_ready()


class ForkComp(PipeComp):
    """Duplicates each upstream value onto every output connector.

    A fork keeps the upstream handshake open while its copy travels on,
    and clears it once its own copy has been taken by every output.
    Two forks can be joined by name through their ``upflag`` and
    ``name`` attributes.
    """

    is_fork = True

    def __init__(
        self,
        name: Optional[str] = None,
        parent: Any = None,
        attrs: Optional[Dict[str, Any]] = None,
        settings: Optional[FlowSettings] = None,
    ) -> None:
        super().__init__(name, parent, attrs, settings)
        self._forking = False
        self._prepped = False
        self._upflag = False
        self._conn: Optional[ConnComp] = None
        self.registry: Optional[Mapping[str, "ForkComp"]] = None

    def rdst_to_src(self, conn: ConnComp, rdst: PipeComp) -> None:
        """Clear the handshake held for the previous value, then copy the next."""
        if not self.src_vacant():
            return
        nothing_new = False
        srcput_flag = False
        if self._forking:
            self.rdst_clr_handshake(conn, rdst)
            self.rdst_clr_val(rdst)
            if rdst.handsout == 0:
                self.src_request()
            else:
                nothing_new = True
            self._forking = False

        if not nothing_new and rdst.dst_occupied():
            value = self.rdst_cpy(rdst)
            self._forking = True
            srcput_flag = self.src_put(value)

        reserved = not rdst.handsout and rdst._reserve_text2()
        self.rdst_chk(rdst)
        self._finish_text2(rdst, reserved)
        if srcput_flag:
            self.dst_notify()

    def src_vacant(self) -> bool:
        """Vacant when the buffer has room, or when every output would accept."""
        if PipeComp.src_vacant(self):
            return True
        for edge in self.node.out_edges():
            if not edge.end_node.value.src_vacant():
                return False
        return True

    def src_request(self) -> None:
        """Ask upstream for a value at once, bypassing the event queue."""
        if self._src_requested or not self.src_vacant():
            return
        self._src_request()

    def dst_notify(self) -> None:
        """Offer the buffered value downstream at once, bypassing the event queue."""
        if self._dst_notified or not self.dst_occupied():
            return
        self._dst_notify()

    def _ensure_prepped(self) -> None:
        if not self._prepped:
            self._prepped = True
            self.prep(self.registry)

    def _src_request(self) -> None:
        self._ensure_prepped()
        super()._src_request()

    def _dst_notify(self) -> None:
        self._ensure_prepped()
        super()._dst_notify()

    def _color_outconn(self, color: str) -> None:
        self.color = color
        super()._color_outconn(color)

    def _update_and_pause(self) -> int:
        return 1

    def _update_text2(self) -> None:
        if self.settings.showforkvals:
            super()._update_text2()

    def prep(self, registry: Optional[Mapping[str, "ForkComp"]] = None) -> Optional[ConnComp]:
        """Join this fork to the fork named by its ``name`` attribute.

        With a true ``upflag`` this fork is fed from the named one,
        otherwise it feeds the named one.  Nothing happens when the
        ``upflag`` attribute is missing, when the side to be joined is
        already connected, or when the name is not found.  Returns the
        new connector, or None.
        """
        upflag = self.find_value("upflag")
        if upflag is None:
            return None
        self._upflag = bool(upflag)
        if (self._upflag and self.nsrc() > 0) or (not self._upflag and self.ndst() > 0):
            return None
        name = self.find_value("name")
        if not name or registry is None:
            return None
        other = registry.get(name)
        if other is None:
            return None
        up, down = (other, self) if self._upflag else (self, other)
        self._conn = ConnComp()
        self._conn.edge.attach_nodes(up.node, down.node)
        return self._conn

    def close(self) -> None:
        """Remove the connector made by ``prep``, if any."""
        if self._conn is not None:
            self._conn.edge.remove_nodes()
            self._conn = None