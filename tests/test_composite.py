import pytest

from iplflow.composite import InvoPipesComp, PipesComp, format_buffers
from iplflow.core import FlowSettings
from iplflow.pipes import PipeComp, connect


class _FakeInvocation:
    def __init__(self, alu=False, alu_complete=False):
        self.alu = alu
        self.alu_complete = alu_complete
        self.fired = 0
        self.text_updates = []

    def alustyle(self, srcflag):
        return self.alu

    def alucomplete(self, srcflag):
        return self.alu_complete

    def invofunc(self):
        self.fired += 1

    def update_srctext(self, pipe):
        self.text_updates.append(("src", pipe))

    def update_dsttext(self, pipe):
        self.text_updates.append(("dst", pipe))


@pytest.fixture
def settings():
    return FlowSettings()


def _group(settings, count, exclusive=False):
    group = PipesComp(settings=settings)
    group.exclusive = exclusive
    leaves = [group.append(PipeComp(f"p{i}", settings=settings)) for i in range(count)]
    return group, leaves


def _invocation(settings, nsrc=1, ndst=1, **kwargs):
    invo = _FakeInvocation(**kwargs)
    pipes = InvoPipesComp(invo, settings)
    src = pipes.append(PipesComp(pipes, settings))
    dst = pipes.append(PipesComp(pipes, settings))
    src_leaves = [src.append(PipeComp(settings=settings)) for _ in range(nsrc)]
    dst_leaves = [dst.append(PipeComp(settings=settings)) for _ in range(ndst)]
    return invo, pipes, src, dst, src_leaves, dst_leaves


def test_append_sets_parent_and_leaves_are_depth_first(settings):
    outer = PipesComp(settings=settings)
    a = outer.append(PipeComp("a", settings=settings))
    inner = outer.append(PipesComp(settings=settings))
    b = inner.append(PipeComp("b"))
    c = outer.append(PipeComp("c", settings=settings))
    assert outer.leaves() == [a, b, c]
    assert outer.numleaf() == 3
    assert inner.parent is outer
    assert b.parent is inner
    assert b.settings is settings
    assert b.onscreen() is False
    assert a.onscreen() is False


def test_shared_group_completes_only_when_all_members_hold(settings):
    group, (first, second) = _group(settings, 2)
    first.src_put(1)
    assert group.dst_occupied() is False
    assert group.complete() is False
    second.src_put(2)
    assert group.dst_occupied() is True
    assert group.complete() is True


def test_complete_group_stays_closed_until_drained(settings):
    group, (first, second) = _group(settings, 2)
    first.src_put(1)
    second.src_put(2)
    assert group.complete() is True
    assert first.dst_get() == 1
    assert group.dst_occupied() is True
    assert first.src_vacant() is False
    assert group.src_vacant() is False
    assert second.dst_get() == 2
    assert group.complete() is False
    assert first.src_vacant() is True


def test_exclusive_group_completes_on_any_member(settings):
    group, (first, second) = _group(settings, 2, exclusive=True)
    assert group.complete() is False
    second.src_put("x")
    assert group.complete() is True
    assert group.dst_occupied() is True


def test_ackwait_keeps_group_complete_after_drain(settings):
    group, (only,) = _group(settings, 1)
    only.src_put(3)
    assert group.complete() is True
    group.ackwait = 1
    only.buff.clear()
    assert group.complete() is True
    assert group.src_vacant() is False
    group.ackwait = 0
    assert group.complete() is False
    assert group.src_vacant() is True


def test_format_buffers_joins_leaf_buffers(settings):
    group, (first, second) = _group(settings, 2)
    first.src_put(1)
    second.src_put("a")
    assert format_buffers(group) == '1,"a"'
    second.buff.clear()
    assert format_buffers(group) == first.buffer_text() + ","


def test_value_flows_into_group_member(settings):
    group, (first, second) = _group(settings, 2)
    upstream = PipeComp("up", settings=settings)
    connect(upstream, first)
    upstream.src_put(5)
    upstream.dst_notify()
    assert first.buff == [5]
    assert upstream.buff == []
    assert upstream.handsout == 0
    assert group.dst_ready() is False


def test_complete_group_delivers_downstream(settings):
    group, (only,) = _group(settings, 1)
    downstream = PipeComp("down", settings=settings)
    connect(only, downstream)
    only.src_put(7)
    assert group.complete() is True
    assert group.dst_ready() is True
    assert group.src_ready() is False
    only.dst_notify()
    assert downstream.buff == [7]
    assert only.buff == []
    assert group.complete() is False


def test_invopipes_src_and_dst_groups(settings):
    empty = InvoPipesComp(None, settings)
    assert empty.srccomp() is None
    assert empty.dstcomp() is None
    assert empty.exclusive is True
    invo, pipes, src, dst, src_leaves, dst_leaves = _invocation(settings, nsrc=2, ndst=1)
    assert pipes.srccomp() is src
    assert pipes.dstcomp() is dst
    assert pipes.invocomp() is invo
    assert pipes.find_subpipe(True, 1) is src_leaves[1]
    assert pipes.find_subpipe(False, 0) is dst_leaves[0]
    assert pipes.find_subpipe(False, 5) is None


def test_invocation_resolved_through_nested_groups(settings):
    invo, pipes, src, dst, src_leaves, _ = _invocation(settings)
    inner = src.append(PipesComp(settings=settings))
    deep = inner.append(PipeComp())
    assert inner.invocomp() is invo
    assert deep.invocomp() is invo
    assert src_leaves[0].invocomp() is invo
    assert PipesComp(settings=settings).invocomp() is None


def test_text_updates_reach_invocation(settings):
    invo, pipes, src, dst, src_leaves, dst_leaves = _invocation(settings)
    src_leaves[0].src_put(4)
    assert invo.text_updates[-1] == ("src", src_leaves[0])
    dst_leaves[0].src_put(9)
    assert invo.text_updates[-1] == ("dst", dst_leaves[0])


def test_complete_arguments_fire_invocation(settings):
    invo, pipes, src, dst, src_leaves, _ = _invocation(settings)
    src_leaves[0].src_put(4)
    assert invo.fired == 0
    src_leaves[0].dst_notify()
    assert invo.fired == 1
    assert src.complete() is True


def test_animated_event_queue_defers_firing(settings):
    settings.eventqueueflag = 1
    settings.animateflag = 1
    invo, pipes, src, dst, src_leaves, _ = _invocation(settings)
    src_leaves[0].buff.append(4)
    src_leaves[0].dst_notify()
    assert invo.fired == 0
    assert len(settings) == 1
    assert settings.tick() == 1
    assert invo.fired == 1


def test_alu_style_completion(settings):
    invo, pipes, src, dst, src_leaves, _ = _invocation(settings, alu=True, alu_complete=True)
    assert src_leaves[0].buff == []
    assert src.complete() is True
    invo.alu_complete = False
    src._complete = False
    assert src.complete() is False


def test_result_request_clears_unitary_ackwait(settings):
    invo, pipes, src, dst, src_leaves, dst_leaves = _invocation(settings)
    src.ackwait = 1
    dst.src_request()
    assert src.ackwait == 0
    assert invo.fired == 0


def test_result_request_fires_when_arguments_complete(settings):
    settings.unitaryflag = 0
    invo, pipes, src, dst, src_leaves, dst_leaves = _invocation(settings)
    src_leaves[0].buff.append(1)
    dst.src_request()
    assert invo.fired == 1


def test_arguments_group_is_always_dst_ready(settings):
    invo, pipes, src, dst, src_leaves, dst_leaves = _invocation(settings)
    assert src.dst_ready() is True
    assert dst.dst_ready() is False