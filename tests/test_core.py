import pytest

from iplflow.core import FlowSettings, PipeEvent, TopoEdge, TopoNode


class Recorder:
    def __init__(self, settings=None, requeue=False):
        self.calls = []
        self.settings = settings
        self.requeue = requeue

    def process_event(self, notify):
        self.calls.append(notify)
        if self.requeue:
            self.requeue = False
            self.settings.enqueue(self, not notify)


def test_attach_nodes_sets_in_and_out_edges():
    a, b = TopoNode("a"), TopoNode("b")
    edge = TopoEdge("e")
    edge.attach_nodes(a, b)
    assert edge.start_node is a
    assert edge.end_node is b
    assert a.out_edges() == [edge]
    assert a.in_edges() == []
    assert b.in_edges() == [edge]
    assert b.out_edges() == []


def test_edges_keep_attach_order():
    hub = TopoNode("hub")
    others = [TopoNode(i) for i in range(3)]
    edges = [TopoEdge(i) for i in range(3)]
    edges[0].attach_nodes(others[0], hub)
    edges[1].attach_nodes(hub, others[1])
    edges[2].attach_nodes(others[2], hub)
    assert hub.edges() == edges
    assert hub.in_edges() == [edges[0], edges[2]]
    assert hub.out_edges() == [edges[1]]


def test_remove_nodes_detaches_both_ends():
    a, b = TopoNode("a"), TopoNode("b")
    edge = TopoEdge()
    edge.attach_nodes(a, b)
    edge.remove_nodes()
    assert edge.start_node is None and edge.end_node is None
    assert a.edges() == [] and b.edges() == []


def test_reattach_moves_edge():
    a, b, c = TopoNode("a"), TopoNode("b"), TopoNode("c")
    edge = TopoEdge()
    edge.attach_nodes(a, b)
    edge.attach_nodes(a, c)
    assert b.edges() == []
    assert c.in_edges() == [edge]
    assert a.edges() == [edge]


def test_self_loop_listed_once():
    node = TopoNode("n")
    edge = TopoEdge()
    edge.attach_nodes(node, node)
    assert node.edges() == [edge]
    assert node.in_edges() == [edge]
    assert node.out_edges() == [edge]


def test_edges_returns_copy():
    a, b = TopoNode(), TopoNode()
    TopoEdge().attach_nodes(a, b)
    listed = a.edges()
    listed.clear()
    assert len(a.edges()) == 1


def test_settings_defaults_match_source():
    settings = FlowSettings()
    assert settings.unitaryflag == 1
    assert settings.eventqueueflag == 0
    assert settings.animateflag == 0
    assert settings.singlestep == 0
    assert len(settings) == 0


def test_enqueue_and_drain_preserve_order():
    settings = FlowSettings()
    target = Recorder()
    first = settings.enqueue(target, True)
    second = settings.enqueue(target, False)
    assert first == PipeEvent(target, True)
    assert settings.drain() == [first, second]
    assert settings.drain() == []
    assert target.calls == []


def test_tick_fires_pending_events_in_order():
    settings = FlowSettings()
    target = Recorder()
    settings.enqueue(target, True)
    settings.enqueue(target, False)
    fired = settings.tick()
    assert fired == 2
    assert target.calls == [True, False]
    assert settings.lasttick == 1
    assert len(settings) == 0


def test_events_queued_while_firing_wait_for_next_tick():
    settings = FlowSettings()
    target = Recorder(settings, requeue=True)
    settings.enqueue(target, True)
    assert settings.tick() == 1
    assert target.calls == [True]
    assert len(settings) == 1
    assert settings.tick() == 1
    assert target.calls == [True, False]
    assert settings.lasttick == 2


def test_fire_without_handler_raises():
    event = PipeEvent(object(), True)
    with pytest.raises(AttributeError):
        event.fire()