# iplflow

`iplflow` models pipelined dataflow networks that are built from
handshaking components. Values travel from pipe to pipe along connectors.
A value moves only when the downstream pipe has room for it. The upstream
pipe drops its value only after every outgoing connector has taken a copy.

## Components

- `iplflow.core`
  - `TopoNode` and `TopoEdge` make up the directed graph under the components.
  - `FlowSettings` holds the flags shared by one network: `eventqueueflag`, `singlestep`, `animateflag`, `unitaryflag`, `showforkvals` and `cycle_count`. It also holds the queue of pending `PipeEvent`s.
    - `enqueue(target, notify)` adds an event to the queue.
    - `drain()` removes the pending events and returns them without firing them.
    - `tick()` fires the events that were pending when the tick started. Events queued while they fire wait for the next tick.
- `iplflow.pipes`
  - `PipeComp` is a buffered pipe stage.
    - Its buffer size defaults to 1 and can be changed with `set_buffsize`. A size of -1 means unbounded.
    - `src_put` adds a value.
    - `dst_get` takes a value out. It raises `PipeError` on a pipe that has output connectors, and `EmptyPipeError` when the pipe holds nothing.
    - `dst_notify` offers the buffered value downstream.
    - `src_request` asks upstream for a value.
  - `ConnComp` is a connector. It carries the `handout` handshake flag.
  - `connect(upstream, downstream)` links two pipes with a new connector.
- `iplflow.special`
  - `ArbiterComp` merges two inputs. It alternates between them, using a two-value buffer.
  - `ForkComp` copies each value to every output. `prep(registry)` can join it to another fork, named by its `upflag` and `name` attributes.
- `iplflow.composite`
  - `PipesComp` groups pipes into one unit.
    - The group is complete when all of its members hold a value.
    - An exclusive group is complete when any one of its members holds a value.
  - `InvoPipesComp` holds the argument group and the result group of an invocation.
  - `format_buffers(pipes)` renders the buffered values of a group as comma-separated text.
- `iplflow.invocation`
  - `InvoComp` calls a Python function once a complete set of arguments has arrived.
    - A single result goes into the first result pipe.
    - A list or tuple result is spread over the result pipes, and `None` entries are skipped.

## Example

```python
from iplflow.core import FlowSettings
from iplflow.pipes import PipeComp, connect

settings = FlowSettings()
a = PipeComp("a", None, {}, settings)
b = PipeComp("b", None, {}, settings)
connect(a, b)

a.src_put(42)
a.dst_notify()        # a offers its value; b takes it
value = b.dst_get()   # 42
```

The next example adds an invocation between the pipes:

```python
from iplflow.invocation import InvoComp

add = InvoComp(lambda x, y: x + y, "add", 2, 1, None, settings)
x = PipeComp("x", None, {}, settings)
y = PipeComp("y", None, {}, settings)
out = PipeComp("out", None, {}, settings)
connect(x, add.find_subpipe(True, 0))
connect(y, add.find_subpipe(True, 1))
connect(add.find_subpipe(False, 0), out)

x.src_put(1); x.dst_notify()
y.src_put(2); y.dst_notify()   # arguments complete: add fires
out.dst_get()                  # 3
```

When `settings.eventqueueflag` is set, requests and notifications are
queued rather than run at once. Call `settings.tick()` to fire them.

## What it does not do

- It draws nothing. Pipes keep their display state, such as `text2`, `color` and the connector colours, as plain attributes, and it is up to you to show them.
- It has no link to remote peers.
- It does not read or write network files.
- It has no command-line program. You build networks in Python code.

## Installing and testing

```
pip install .
pip install ".[test]"
pytest
```