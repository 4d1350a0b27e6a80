"""Invocations: nodes that apply a function once a full set of arguments has arrived.

An invocation owns two groups of pipes, one for arguments and one for
results.  When the argument group is complete and the result group has
room, the function is called with the argument values and its result is
spread over the result pipes.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any, Callable, Iterable, Iterator, List, Optional, Tuple, Union

from iplflow.composite import InvoPipesComp, PipesComp, format_buffers
from iplflow.core import FlowSettings
from iplflow.pipes import BLACK, BLUE, RED, PipeComp, PipeError

log = logging.getLogger(__name__)

SINK = "SINK"
IAD = "IAD"

Sizes = Union[int, Iterable[int], None]


def _sizes(sizes: Sizes) -> List[int]:
    if sizes is None:
        return []
    if isinstance(sizes, int):
        return [sizes]
    return [int(size) for size in sizes]


def _is_group(node: Any) -> bool:
    return bool(getattr(node, "is_pipes", False))


def _preorder(group: PipesComp) -> Iterator[Any]:
    for child in group.children:
        yield child
        if _is_group(child):
            yield from _preorder(child)


class InvoComp(PipeComp):
    """A function call node with grouped argument and result pipes."""

    is_invo = True
    _func_counts: Counter = Counter()

    def __init__(
        self,
        func: Optional[Callable[..., Any]] = None,
        funcname: Optional[str] = None,
        srcsizes: Sizes = (),
        dstsizes: Sizes = (),
        parent: Any = None,
        settings: Optional[FlowSettings] = None,
    ) -> None:
        super().__init__(funcname, parent, None, settings)
        self._func: Optional[Callable[..., Any]] = None
        self._funcname = funcname
        self.funcnum = 0
        self._srcsizes = _sizes(srcsizes)
        self._dstsizes = _sizes(dstsizes)
        self.invopipes: Optional[InvoPipesComp] = None
        self.width = 64
        self.height = 64
        self.next_in_line = 0
        self.invofunc_block = False
        self.srctext = ""
        self.dsttext = ""
        self.func = func
        self.name = self.funcname
        self.build_pipes()

    # function -------------------------------------------------------------

    @property
    def func(self) -> Optional[Callable[..., Any]]:
        """The function applied to the arguments."""
        return self._func

    @func.setter
    def func(self, func: Optional[Callable[..., Any]]) -> None:
        self._func = func
        if func is not None:
            key = self.funcname
            self.funcnum = self._func_counts[key]
            self._func_counts[key] += 1

    @property
    def funcname(self) -> Optional[str]:
        """The given name, or the function's own name."""
        if self._funcname is None and self._func is not None:
            self._funcname = getattr(self._func, "__name__", None)
        return self._funcname

    @funcname.setter
    def funcname(self, name: Optional[str]) -> None:
        self._funcname = name

    # sizes ------------------------------------------------------------------

    @property
    def srcsizes(self) -> Tuple[int, ...]:
        return tuple(self._srcsizes)

    @property
    def dstsizes(self) -> Tuple[int, ...]:
        return tuple(self._dstsizes)

    def nsrc(self) -> int:
        """Total number of argument pipes."""
        return sum(self._srcsizes)

    def ndst(self) -> int:
        """Total number of result pipes."""
        return sum(self._dstsizes)

    def set_srcsizes(self, sizes: Sizes) -> None:
        """Set the argument list sizes; more than one makes the group exclusive."""
        self._srcsizes = _sizes(sizes)
        if len(self._srcsizes) > 1 and self.invopipes is not None:
            src = self.invopipes.srccomp()
            if src is not None:
                src.exclusive = True

    def set_dstsizes(self, sizes: Sizes) -> None:
        """Set the result list sizes; more than one makes the group exclusive."""
        self._dstsizes = _sizes(sizes)
        if len(self._dstsizes) > 1 and self.invopipes is not None:
            dst = self.invopipes.dstcomp()
            if dst is not None:
                dst.exclusive = True

    # construction -------------------------------------------------------------

    def build_pipes(self) -> None:
        """Create the argument and result pipes that do not exist yet."""
        if self.invopipes is None:
            self.invopipes = InvoPipesComp(self, self.settings)
            self.invopipes.append(PipesComp(self.invopipes))
            self.invopipes.append(PipesComp(self.invopipes))
        self._fill(self.invopipes.srccomp(), self._srcsizes)
        self._fill(self.invopipes.dstcomp(), self._dstsizes)

    @staticmethod
    def _fill(group: PipesComp, sizes: List[int]) -> None:
        if group.children:
            return
        if len(sizes) == 1:
            for _ in range(sizes[0]):
                group.append(PipeComp(parent=group))
        elif len(sizes) > 1:
            group.exclusive = True
            for size in sizes:
                sub = group.append(PipesComp(group))
                for _ in range(size):
                    sub.append(PipeComp(parent=sub))

    def copy_only(self) -> "InvoComp":
        """A copy with the same function and sizes whose pipes are not yet built."""
        comp = InvoComp(self._func, self.funcname, (), (), None, self.settings)
        comp.attrs = dict(self.attrs)
        comp.set_srcsizes(self._srcsizes)
        comp.set_dstsizes(self._dstsizes)
        comp.width = self.width
        comp.height = self.height
        return comp

    # firing -----------------------------------------------------------------

    def invofunc(self) -> None:
        """Take a complete argument set, call the function and pass the result on."""
        if self.invofunc_block:
            return
        assert self.invopipes is not None
        top_src = self.invopipes.srccomp()
        dstcomp = self.invopipes.dstcomp()

        for leaf in dstcomp.leaves():
            if leaf._dst_occupied():
                log.warning("invocation fired while a result pipe still holds data")
                self.settings.singlestep = 1
                return

        srccomp = self.next_complete()
        if srccomp is None:
            return
        if self._func is None:
            raise PipeError(f"invocation {self.funcname!r} has no function")

        self.invofunc_block = True
        try:
            if self.settings.unitaryflag:
                top_src.ackwait = 1
            args: List[Any] = []
            for srcpipe in srccomp.children:
                value = None
                if not _is_group(srcpipe) and srcpipe._dst_occupied():
                    try:
                        value = srcpipe.dst_get()
                    except PipeError:
                        value = None
                args.append(value)

            result = self._func(*args)
            putflag = self._put_result(dstcomp, result)

            if putflag:
                if self.alustyle(False) and self.alucomplete(False):
                    for leaf in dstcomp.leaves():
                        if leaf._dst_occupied():
                            if not self.settings.eventqueueflag:
                                leaf._dst_notify()
                            else:
                                leaf._dst_notified = True
                                self.settings.enqueue(leaf, True)
                elif dstcomp.dst_occupied():
                    dstcomp.dst_notify()
            elif self.funcname in (SINK, IAD):
                self.update_dsttext()
                if top_src.ackwait:
                    top_src.ackwait = 0
                    top_src.src_request()
        finally:
            self.invofunc_block = False

        if not top_src.ackwait and top_src.dst_occupied() and dstcomp.src_vacant():
            self.invofunc()

    @staticmethod
    def _put_result(dstcomp: PipesComp, result: Any) -> bool:
        if result is None:
            return False
        leaves = dstcomp.leaves()
        if isinstance(result, (list, tuple)):
            putflag = False
            for leaf, value in zip(leaves, result):
                if value is None:
                    continue
                putflag = leaf.src_put(value) or putflag
            return putflag
        if not leaves:
            log.warning("output generated but no output pipes")
            return False
        putflag = leaves[0].src_put(result)
        if len(leaves) > 1:
            log.warning("single output generated but multiple pipes present")
        return putflag

    def alustyle(self, srcflag: bool) -> bool:
        """Whether completion of a group is judged by the invocation itself."""
        return False

    def alucomplete(self, srcflag: bool) -> bool:
        """Completion of a group when ``alustyle`` is on."""
        return False

    def next_complete(self) -> Optional[PipesComp]:
        """The next complete argument list, searched round-robin from ``next_in_line``."""
        assert self.invopipes is not None
        srccomp = self.invopipes.srccomp()
        leaves = srccomp.leaves()
        total = len(leaves)
        if total == 0:
            return None
        index = self.next_in_line if 0 <= self.next_in_line < total else 0
        first = index
        while True:
            ancestor = leaves[index].parent
            while ancestor.parent is not None and not ancestor.parent.exclusive:
                ancestor = ancestor.parent
            width = ancestor.numleaf()
            index = 0 if index + width >= total else index + width
            if ancestor.dst_occupied():
                self.next_in_line = index
                return ancestor
            if index == first:
                return None

    # lookup -----------------------------------------------------------------

    def find_subpipe(self, srcflag: bool, index: int) -> Optional[PipeComp]:
        """The argument (or result) pipe at ``index``."""
        if self.invopipes is None:
            return None
        return self.invopipes.find_subpipe(srcflag, index)

    def find_subpipe_index(self, comp: Any) -> Tuple[int, Optional[bool]]:
        """(index, srcflag) of a pipe or group inside this invocation, or (-1, None)."""
        if self.invopipes is None:
            return -1, None
        for srcflag, group in ((True, self.invopipes.srccomp()), (False, self.invopipes.dstcomp())):
            if group is None:
                continue
            index = 0
            for node in _preorder(group):
                if node is comp:
                    return index, srcflag
                if not _is_group(node):
                    index += 1
        return -1, None

    def subbuff_count(self, srcflag: bool) -> int:
        """Number of values held across the argument (or result) pipes."""
        if self.invopipes is None:
            return 0
        group = self.invopipes.srccomp() if srcflag else self.invopipes.dstcomp()
        return sum(len(leaf.buff) for leaf in group.leaves())

    def _leaf(self, srcflag: bool, index: int) -> Optional[PipeComp]:
        return self.find_subpipe(srcflag, index)

    def remote_srccomp(self, index: int, lowlevel: bool = False) -> Tuple[Optional[PipeComp], int]:
        """The pipe feeding argument ``index`` and its connector order."""
        leaf = self._leaf(True, index)
        if leaf is None:
            return None, -1
        return leaf.remote_srccomp(0, lowlevel)

    def remote_dstcomp(self, index: int, lowlevel: bool = False) -> Tuple[Optional[PipeComp], int]:
        """The pipe fed by result ``index`` and its connector order."""
        leaf = self._leaf(False, index)
        if leaf is None:
            return None, -1
        return leaf.remote_dstcomp(0, lowlevel)

    def remote_dstcomp_fanout(
        self, index: int, fanout: int, lowlevel: bool = False
    ) -> Tuple[Optional[PipeComp], int]:
        """The pipe on output connector ``fanout`` of result ``index``."""
        leaf = self._leaf(False, index)
        if leaf is None:
            return None, -1
        return leaf.remote_dstcomp(fanout, lowlevel)

    def remote_dstcomps(
        self, index: int, maxpipecomps: int, lowlevel: bool = False
    ) -> List[Tuple[PipeComp, int]]:
        """Every pipe fed by result ``index``, with orders, at most ``maxpipecomps``."""
        leaf = self._leaf(False, index)
        found: List[Tuple[PipeComp, int]] = []
        if leaf is None:
            return found
        while len(found) < maxpipecomps:
            comp, order = leaf.remote_dstcomp(len(found), lowlevel)
            if comp is None:
                break
            found.append((comp, order))
        return found

    # display ----------------------------------------------------------------

    def _animated_queue(self) -> bool:
        return bool(self.settings.animateflag and self.settings.eventqueueflag)

    def update_srctext(self, pipe: Optional[PipeComp] = None) -> None:
        """Refresh the text showing the argument values."""
        if self._animated_queue() or self.invopipes is None:
            return
        src = self.invopipes.srccomp()
        self.srctext = "{" + format_buffers(src) + "}" if self.subbuff_count(True) > 0 else ""
        if src.complete():
            self.color = RED

    def update_dsttext(self, pipe: Optional[PipeComp] = None) -> None:
        """Refresh the text showing the result values and recolour connectors."""
        if self.invopipes is None:
            return
        dst = self.invopipes.dstcomp()
        if self.funcname == SINK:
            text = self.buffer_text()
        elif self.subbuff_count(False) > 0:
            text = format_buffers(dst)
            if not self._animated_queue():
                text = "{" + text + "}"
        else:
            text = ""
        self.dsttext = text
        if not text or self.funcname == SINK:
            if not self.invopipes.srccomp().complete():
                self.color = BLUE
            self._color_outconn(BLUE)
        elif dst.dst_occupied():
            for leaf in dst.leaves():
                if leaf.buff:
                    leaf._color_outconn(RED)

    def _color_outconn(self, color: str) -> None:
        if self.invopipes is None:
            return
        for leaf in self.invopipes.dstcomp().leaves():
            if leaf.current_outconn_color == BLACK and color == BLUE:
                continue
            leaf._color_outconn(color)