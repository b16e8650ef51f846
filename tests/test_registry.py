from drop.falling import FallingObject
from drop.registry import ObjectRegistry
from tests.fakes import FakeImage


def make(clock, duration=1000, auto_start=True, name="img"):
    return FallingObject(FakeImage(name), fall_duration_ms=duration, auto_start=auto_start, clock=clock)


def test_moving_and_stopped_are_disjoint(clock):
    reg = ObjectRegistry()
    idle = make(clock, auto_start=False)
    fast = make(clock, duration=100)
    slow = make(clock, duration=1000)
    for obj in (idle, fast, slow):
        reg.add(obj)

    assert reg.get_moving() == [fast, slow]
    assert reg.get_stopped() == []

    reg.advance(now=500)

    moving, stopped = reg.get_moving(), reg.get_stopped()
    assert moving == [slow]
    assert stopped == [fast]
    assert idle not in moving and idle not in stopped
    assert not set(map(id, moving)) & set(map(id, stopped))
    assert len(reg) == 3


def test_landing_is_forwarded_once_per_object(clock):
    reg = ObjectRegistry()
    heard = []
    reg.on_landing(lambda: heard.append("a"))
    reg.on_landing(lambda: heard.append("b"))

    first, second = make(clock, 100), make(clock, 100)
    reg.add(first)
    reg.add(second)

    landed = reg.advance(now=200)

    assert landed == [first, second]
    # Two landings in one pass are two notifications, not one merged event
    assert heard == ["a", "b", "a", "b"]

    reg.advance(now=300)
    assert len(heard) == 4


def test_adding_twice_does_not_double_forward(clock):
    reg = ObjectRegistry()
    heard = []
    reg.on_landing(lambda: heard.append(1))
    obj = make(clock, 100)

    reg.add(obj)
    reg.add(obj)
    reg.advance(now=100)

    assert len(reg) == 1
    assert heard == [1]


def test_insertion_order_is_preserved(clock):
    reg = ObjectRegistry()
    objs = [make(clock, name=str(i)) for i in range(5)]
    for obj in objs:
        reg.add(obj)

    seen = []
    reg.for_each(seen.append)
    assert seen == objs
    assert list(reg) == objs


def test_settled_follows_landing_order(clock):
    reg = ObjectRegistry()
    late = make(clock, duration=900)
    early = make(clock, duration=100)
    reg.add(late)
    reg.add(early)

    reg.advance(now=150)
    reg.advance(now=950)

    assert reg.get_stopped() == [late, early]
    assert reg.get_settled() == [early, late]
    assert early.landing_order < late.landing_order


def test_additions_during_iteration_are_not_visited(clock):
    reg = ObjectRegistry()
    reg.add(make(clock))
    visited = []

    def visit(obj):
        visited.append(obj)
        reg.add(make(clock))

    reg.for_each(visit)

    assert len(visited) == 1
    assert len(reg) == 2


def test_landing_callback_may_add_without_disturbing_the_pass(clock):
    reg = ObjectRegistry()
    reg.add(make(clock, 100))
    reg.on_landing(lambda: reg.add(make(clock, 100)))

    landed = reg.advance(now=100)

    assert len(landed) == 1
    assert len(reg) == 2


def test_already_landed_object_gets_a_landing_order(clock):
    obj = make(clock, 100)
    obj.advance(now=100)
    reg = ObjectRegistry()
    heard = []
    reg.on_landing(lambda: heard.append(1))
    reg.add(obj)
    assert reg.get_settled() == [obj]
    assert obj.landing_order == 1
    assert heard == [1]
    assert obj in reg
