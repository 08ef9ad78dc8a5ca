from faceoverlay.timers import TimerQueue


def test_fires_due_callbacks_in_deadline_order(clock):
    q = TimerQueue(clock=clock)
    fired = []
    q.call_later(2.0, lambda: fired.append("b"))
    q.call_later(1.0, lambda: fired.append("a"))
    q.call_later(5.0, lambda: fired.append("c"))
    clock.set(2.0)
    assert q.run_due() == 2
    assert fired == ["a", "b"]
    assert len(q) == 1


def test_cancelled_callback_never_fires(clock):
    q = TimerQueue(clock=clock)
    fired = []
    h = q.call_later(1.0, lambda: fired.append(1))
    h.cancel()
    clock.set(10.0)
    assert q.run_due() == 0
    assert fired == []
    assert len(q) == 0


def test_callback_may_schedule_the_next_link(clock):
    q = TimerQueue(clock=clock)
    fired = []

    def step():
        fired.append(clock())
        if len(fired) < 3:
            q.call_later(1.0, step)

    q.call_later(1.0, step)
    for t in (0.5, 1.0, 1.5, 2.0, 3.0, 9.0):
        clock.set(t)
        q.run_due()
    assert fired == [1.0, 2.0, 3.0]


def test_cancel_all(clock):
    q = TimerQueue(clock=clock)
    fired = []
    q.call_later(0.0, lambda: fired.append(1))
    q.cancel_all()
    assert q.run_due() == 0
    assert fired == []


def test_call_at_chains_fire_in_one_late_pass(clock):
    q = TimerQueue(clock=clock)
    fired = []

    def step():
        fired.append(len(fired))
        if len(fired) < 3:
            q.call_at(1.0 + len(fired), step)

    q.call_at(1.0, step)
    clock.set(5.0)
    assert q.run_due() == 3
    assert fired == [0, 1, 2]
