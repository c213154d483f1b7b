import threading

import defunc
from defunc import Traced


def test_thread_local_depth_keeps_indentation_per_thread(out):
    class Worker(Traced, watch=["outer", "inner"]):
        def outer(self, n):
            return self.inner(n)

        def inner(self, n):
            return n

    start = threading.Barrier(4)

    def run():
        w = Worker()
        start.wait()
        for i in range(200):
            w.outer(i)

    threads = [threading.Thread(target=run) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(out.lines) == 4 * 200 * 4
    for line in out.lines:
        if " outer:" in line:
            assert line.startswith(("enter outer:", "exit outer:"))
        else:
            assert line.startswith(("  enter inner:", "  exit inner:"))
    assert defunc.get_context().depth == 0


def test_shared_depth_mode_single_thread(clock):
    with defunc.capture(clock=clock, thread_local_depth=False) as out:

        class Worker(Traced, watch=["outer", "inner"]):
            def outer(self):
                return self.inner()

            def inner(self):
                return 0

        Worker().outer()
        assert defunc.get_context().depth == 0

    assert [line.split(":")[0] for line in out.lines] == [
        "enter outer",
        "  enter inner",
        "  exit inner",
        "exit outer",
    ]
