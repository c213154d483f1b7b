import gc
import re

import pytest

import defunc
from defunc import ListSink, Traced, get_context
from defunc.tracing.lifetime import LifetimeAuditor, staleness_line

_STALE = re.compile(r"^Collecting (\w+) with id (\d+) which stayed in memory for ([\d.]+)s$")


def test_object_count_delta_counts_instances_built_inside_call(out):
    class Widget(Traced):
        pass

    class Factory(Traced, watch=["build"]):
        def build(self, n):
            self.items = [Widget() for _ in range(n)]
            return n

    f = Factory()
    f.build(3)
    assert out.lines[-1] == "exit build: 3 (object count has changed by +3)"


def test_object_count_delta_is_negative_when_instances_die(out):
    class Widget(Traced):
        pass

    class Holder(Traced, watch=["drop"]):
        def __init__(self):
            self.items = [Widget(), Widget()]

        def drop(self):
            self.items.clear()
            gc.collect()

    h = Holder()
    h.drop()
    assert out.lines[-1] == "exit drop: None (object count has changed by -2)"


def test_stale_instance_reported_on_collection(out, clock):
    class Session(Traced):
        pass

    s = Session()
    ident = id(s)
    clock.advance(121)
    del s
    gc.collect()

    assert len(out.lines) == 1
    match = _STALE.match(out.lines[0])
    assert match is not None
    assert match.group(1) == "Session"
    assert int(match.group(2)) == ident
    assert float(match.group(3)) >= 120


def test_young_instance_collected_silently(out, clock):
    class Session(Traced):
        pass

    s = Session()
    clock.advance(10)
    del s
    gc.collect()
    assert out.lines == []
    assert get_context().auditor.live_count == 0


def test_threshold_is_exclusive(out, clock):
    class Session(Traced):
        pass

    s = Session()
    clock.advance(120)
    defunc.release(s)
    assert out.lines == []


def test_release_reports_once(out, clock):
    class Session(Traced):
        pass

    s = Session()
    clock.advance(200)
    defunc.release(s)
    defunc.release(s)
    del s
    gc.collect()
    assert len(out.lines) == 1
    assert out.lines[0].startswith("Collecting Session with id ")


def test_repeated_collect_notice_is_noop(out):
    class Session(Traced):
        pass

    s = Session()
    auditor = get_context().auditor
    assert auditor.collect(id(s)) == 0.0
    assert auditor.collect(id(s)) is None
    assert s not in auditor


def test_staleness_uses_type_sink(out, clock):
    own = ListSink()

    class Cached(Traced, sink=own):
        pass

    c = Cached()
    clock.advance(500)
    defunc.release(c)
    assert out.lines == []
    assert own.lines == [staleness_line("Cached", id(c), 500.0)]


def test_threshold_follows_config(clock):
    with defunc.capture(clock=clock, stale_threshold=1.0) as out:

        class Session(Traced):
            pass

        s = Session()
        clock.advance(1.5)
        defunc.release(s)

    assert out.lines == [staleness_line("Session", id(s), 1.5)]


def test_audit_can_be_disabled_per_type(out):
    class Untracked(Traced, audit=False):
        pass

    class Child(Untracked):
        pass

    Untracked()
    keep = Child()
    assert get_context().auditor.live_count == 0
    assert keep not in get_context().auditor


def test_subclass_instances_are_tracked_once(out):
    class Base(Traced):
        pass

    class Derived(Base):
        def __new__(cls, *args, **kwargs):
            return super().__new__(cls)

        def __init__(self, value):
            self.value = value

    d = Derived(4)
    auditor = get_context().auditor
    assert d in auditor
    assert auditor.live_count == 1
    assert auditor.records()[0].type_name == "Derived"


def test_audited_block_releases_on_exit(out, clock):
    class Conn(Traced):
        pass

    with defunc.audited(Conn()) as conn:
        clock.advance(300)
        assert conn in get_context().auditor
    assert get_context().auditor.live_count == 0
    assert len(out.lines) == 1


def test_stale_records_lists_old_live_instances(out, clock):
    class Session(Traced):
        pass

    old = Session()
    clock.advance(130)
    young = Session()
    stale = get_context().auditor.stale_records()
    assert [r.ident for r in stale] == [id(old)]
    assert young in get_context().auditor


def test_non_weakrefable_objects_need_explicit_release(clock):
    lines = []
    auditor = LifetimeAuditor(
        clock=clock,
        threshold=lambda: 5.0,
        emit=lambda owner, line: lines.append((owner, line)),
    )
    token = object()
    assert auditor.track(token) is True
    assert auditor.track(token) is False
    assert auditor.live_count == 1

    clock.advance(6)
    assert auditor.release(token) == pytest.approx(6.0)
    assert lines == [(object, staleness_line("object", id(token), 6.0))]
    assert auditor.live_count == 0


def test_machinery_types_are_never_audited(out):
    defunc.instrument(Traced)
    defunc.instrument(defunc.TraceContext)
    assert get_context().auditor.live_count == 0
    assert defunc.intercepted_ops(Traced) == []


def test_instances_without_weakref_support_are_not_audited(out, caplog):
    @defunc.traced().audit()
    class Point(tuple):
        __slots__ = ()

    class Factory(Traced, watch=["build"], audit=False):
        def build(self):
            return [Point((0,)), Point((1,))]

    factory = Factory()
    factory.build()
    factory.build()
    assert out.lines[1] == "exit build: [(0,), (1,)] (object count has changed by +0)"
    assert out.lines[3] == "exit build: [(0,), (1,)] (object count has changed by +0)"
    assert get_context().auditor.live_count == 0
    warnings = [r for r in caplog.records if "not weak-referenceable" in r.getMessage()]
    assert len(warnings) == 1


def test_track_can_require_weakref_support(clock):
    auditor = LifetimeAuditor(clock=clock, threshold=lambda: 1.0, emit=lambda owner, line: None)
    token = object()
    assert auditor.track(token, require_weakref=True) is False
    assert token not in auditor
    assert auditor.live_count == 0
