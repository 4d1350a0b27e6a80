"""Composite pipes: groups of pipes that fill and empty as one unit.

A group of pipes is *complete* when every member holds a value or, for an
exclusive group, when any one member does.  A complete group refuses new
values until every member has been emptied.  An invocation keeps its
arguments and results in two such groups, held together by an
``InvoPipesComp``.
"""

from __future__ import annotations

from typing import Any, Iterator, List, Optional

from iplflow.core import FlowSettings
from iplflow.pipes import PipeComp


def _is_group(node: Any) -> bool:
    return bool(getattr(node, "is_pipes", False))


class PipesComp:
    """An ordered group of pipes and nested groups, complete as a whole."""

    is_pipes = True
    is_invopipes = False

    def __init__(self, parent: Any = None, settings: Optional[FlowSettings] = None) -> None:
        if settings is None:
            settings = getattr(parent, "settings", None)
        if settings is None:
            settings = FlowSettings()
        self.parent = parent
        self.settings = settings
        self.children: List[Any] = []
        self.exclusive = False
        self.ackwait = 0
        self._complete = False
        self._dst_notified = False
        self._src_requested = False

    def __repr__(self) -> str:
        return f"{type(self).__name__}({len(self.children)} members)"

    def __iter__(self) -> Iterator[Any]:
        return iter(self.children)

    def __len__(self) -> int:
        return len(self.children)

    # membership -------------------------------------------------------------

    def append(self, child: Any) -> Any:
        """Add a pipe or nested group; it joins this group and its settings."""
        child.parent = self
        child.settings = self.settings
        self.children.append(child)
        return child

    def leaves(self) -> List[PipeComp]:
        """Every pipe below this group, depth first, in member order."""
        found: List[PipeComp] = []
        for child in self.children:
            if _is_group(child):
                found.extend(child.leaves())
            else:
                found.append(child)
        return found

    def numleaf(self) -> int:
        """Number of pipes below this group."""
        return len(self.leaves())

    def _parent_pipes(self) -> Any:
        parent = self.parent
        if parent is not None and _is_group(parent):
            return parent
        return None

    def invocomp(self) -> Any:
        """The invocation this group belongs to, if any."""
        parent = self._parent_pipes()
        if parent is None:
            return None
        return parent.invocomp()

    # occupancy --------------------------------------------------------------

    def src_vacant(self) -> bool:
        """True when this group, and any enclosing plain group, can take values."""
        parent = self._parent_pipes()
        if parent is not None and not parent.is_invopipes:
            return parent.src_vacant()
        return self._src_vacant()

    def _src_vacant(self) -> bool:
        if not self.complete():
            return True
        for child in self.children:
            if not child._src_vacant():
                return False
        if not self.ackwait:
            self._complete = False
            return True
        return False

    def dst_occupied(self) -> bool:
        """True when this group, and any enclosing shared group, is complete."""
        parent = self._parent_pipes()
        if parent is not None and not parent.is_invopipes and not parent.exclusive:
            return parent.dst_occupied()
        return self._dst_occupied()

    def _dst_occupied(self) -> bool:
        if not self._complete:
            parent = self._parent_pipes()
            if parent is not None and parent.is_invopipes:
                invo = parent.invocomp()
                if invo is not None and (self is parent.srccomp() or self is parent.dstcomp()):
                    srcflag = self is parent.srccomp()
                    if invo.alustyle(srcflag):
                        self._complete = bool(invo.alucomplete(srcflag))
                        return self._complete
            for child in self.children:
                occupied = child._dst_occupied()
                if not occupied and not self.exclusive:
                    return False
                if occupied and self.exclusive:
                    self._complete = True
                    return True
            if not self.exclusive:
                self._complete = True
                return True
            return False

        if any(child._dst_occupied() for child in self.children):
            return True
        if not self.ackwait:
            self._complete = False
            return False
        return True

    def complete(self) -> bool:
        """Refresh and return the completion state."""
        self._dst_occupied()
        return self._complete

    # requests and notifications ---------------------------------------------

    def _queue_or_run(self, notify: bool) -> None:
        if not self.settings.eventqueueflag:
            if notify:
                self._dst_notify()
            else:
                self._src_request()
        elif notify:
            self._dst_notified = True
            self.settings.enqueue(self, True)
        else:
            self._src_requested = True
            self.settings.enqueue(self, False)

    def _animated_queue(self) -> bool:
        return bool(self.settings.animateflag and self.settings.eventqueueflag)

    def src_request(self) -> None:
        """Ask for values, firing the owning invocation when its results drained."""
        if self._src_requested:
            return
        parent = self._parent_pipes()
        if parent is None:
            self._queue_or_run(False)
            return
        if not parent.is_invopipes:
            parent.src_request()
            return
        srccomp = parent.srccomp()
        if self is srccomp:
            self._queue_or_run(False)
        elif self.settings.unitaryflag and srccomp is not None and srccomp.ackwait:
            srccomp.ackwait = 0
            if srccomp.src_vacant():
                srccomp.src_request()
        elif srccomp is not None and srccomp.dst_occupied():
            if not self._animated_queue():
                parent.invocomp().invofunc()
            else:
                self._src_requested = True
                self.settings.enqueue(self, False)

    def _src_request(self) -> None:
        if self._complete:
            return
        for child in self.children:
            child._src_request()

    def src_ready(self) -> bool:
        """True when some member has a value waiting to be taken."""
        if self._complete:
            return False
        return any(child.src_ready() for child in self.children)

    def dst_notify(self) -> None:
        """Offer values downstream, firing the owning invocation when ready."""
        if self._dst_notified:
            return
        parent = self._parent_pipes()
        if parent is None:
            self._queue_or_run(True)
            return
        if not parent.is_invopipes:
            parent.dst_notify()
            return
        dstcomp = parent.dstcomp()
        if self is dstcomp:
            self._queue_or_run(True)
        elif dstcomp is not None and dstcomp.src_vacant():
            if not self._animated_queue():
                parent.invocomp().invofunc()
            else:
                self._dst_notified = True
                self.settings.enqueue(self, True)

    def _dst_notify(self) -> None:
        parent = self._parent_pipes()
        if parent is not None and parent.is_invopipes and self is parent.srccomp():
            parent.invocomp().invofunc()
            return
        if not self._complete:
            return
        if not self.exclusive:
            for child in self.children:
                if not _is_group(child):
                    child._dst_notify()
        else:
            for child in self.children:
                if child._dst_occupied():
                    child._dst_notify()

    def dst_ready(self) -> bool:
        """True when some member's value would move downstream."""
        parent = self._parent_pipes()
        if parent is not None and parent.is_invopipes and self is parent.srccomp():
            return True
        if not self._complete:
            return False
        if not self.exclusive:
            return any(child.dst_ready() for child in self.children if not _is_group(child))
        return any(child._dst_occupied() and child.dst_ready() for child in self.children)

    def process_event(self, notify: bool) -> None:
        """Run a queued notify or request."""
        if notify:
            self._dst_notified = False
            self._dst_notify()
        else:
            self._src_requested = False
            self._src_request()

    # display ----------------------------------------------------------------

    def update_parent_text(self, child: Any, grandchild: Optional[PipeComp]) -> None:
        """Pass a display update for ``grandchild`` up towards the invocation."""
        parent = self._parent_pipes()
        if parent is not None:
            parent.update_parent_text(self, grandchild)


class InvoPipesComp(PipesComp):
    """The argument group and the result group of one invocation."""

    is_invopipes = True

    def __init__(self, invocomp: Any = None, settings: Optional[FlowSettings] = None) -> None:
        if settings is None:
            settings = getattr(invocomp, "settings", None)
        super().__init__(None, settings)
        self._invocomp = invocomp
        self.exclusive = True

    def invocomp(self) -> Any:
        """The invocation that owns these groups."""
        return self._invocomp

    def srccomp(self) -> Optional[PipesComp]:
        """The argument group, or None."""
        return self.children[0] if self.children else None

    def dstcomp(self) -> Optional[PipesComp]:
        """The result group, or None."""
        return self.children[1] if len(self.children) > 1 else None

    def find_subpipe(self, srcflag: bool, index: int) -> Optional[PipeComp]:
        """The argument (or result) pipe at ``index``, counted depth first."""
        group = self.srccomp() if srcflag else self.dstcomp()
        if group is None:
            return None
        leaves = group.leaves()
        return leaves[index] if 0 <= index < len(leaves) else None

    def update_parent_text(self, child: Any, grandchild: Optional[PipeComp]) -> None:
        """Hand the update to the invocation's argument or result display."""
        if self._invocomp is None:
            return
        name = "update_srctext" if child is self.srccomp() else "update_dsttext"
        handler = getattr(self._invocomp, name, None)
        if handler is not None:
            handler(grandchild)


def format_buffers(pipes: PipesComp) -> str:
    """The buffers of every pipe in ``pipes``, depth first, comma separated."""
    return ",".join(leaf.buffer_text() for leaf in pipes.leaves())