import asyncio
import unittest
import sys
import os

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '../')))

from waypoint.core import (
    Scheduler,
    create_signal,
    get_global_error_handler,
    report_error,
    set_global_error_handler,
)
from waypoint.exceptions import (
    GuardThrew,
    NavigationAborted,
    global_error_handler,
    is_navigation_error,
)


class TestSignal(unittest.TestCase):
    def test_subscribers_get_new_and_old(self):
        value, set_value = create_signal(1)
        changes = []
        unsubscribe = value.subscribe(lambda new, old: changes.append((new, old)))

        set_value(2)
        self.assertEqual(value(), 2)
        unsubscribe()
        set_value(3)
        self.assertEqual(changes, [(2, 1)])

    def test_same_object_does_not_notify(self):
        marker = object()
        value, set_value = create_signal(marker)
        changes = []
        value.subscribe(lambda new, old: changes.append(new))
        set_value(marker)
        self.assertEqual(changes, [])


class TestErrorHandler(unittest.TestCase):
    def tearDown(self):
        set_global_error_handler(global_error_handler)

    def test_failing_subscriber_is_reported(self):
        reported = []
        set_global_error_handler(lambda error, description=None: reported.append(error))
        value, set_value = create_signal(0)
        later = []

        def broken(new, old):
            raise RuntimeError("boom")

        value.subscribe(broken)
        value.subscribe(lambda new, old: later.append(new))
        set_value(1)

        self.assertEqual(len(reported), 1)
        self.assertIsInstance(reported[0], RuntimeError)
        self.assertEqual(later, [1])

    def test_default_handler_logs(self):
        self.assertIs(get_global_error_handler(), global_error_handler)
        with self.assertLogs("waypoint", level="ERROR") as logs:
            report_error(ValueError("bad"), "while testing")
        self.assertIn("while testing: ValueError: bad", logs.output[0])

    def test_report_error_never_raises(self):
        def failing_handler(error, description=None):
            raise RuntimeError("handler broke")

        set_global_error_handler(failing_handler)
        with self.assertLogs("waypoint.core", level="ERROR"):
            report_error(ValueError("bad"))

    def test_is_navigation_error(self):
        self.assertTrue(is_navigation_error(ValueError()))
        self.assertTrue(is_navigation_error(GuardThrew()))
        self.assertFalse(is_navigation_error(NavigationAborted()))
        self.assertFalse(is_navigation_error("/login"))
        self.assertFalse(is_navigation_error(None))


class TestScheduler(unittest.IsolatedAsyncioTestCase):
    async def test_runs_tasks_after_current_tick(self):
        scheduler = Scheduler()
        ran = []
        scheduler.enqueue(lambda: ran.append("a"))
        scheduler.enqueue(lambda: ran.append("b"))
        self.assertEqual(ran, [])
        for _ in range(3):
            await asyncio.sleep(0)
        self.assertEqual(ran, ["a", "b"])
        self.assertFalse(scheduler.scheduled)

    async def test_reenqueued_tasks_run_in_same_flush(self):
        scheduler = Scheduler()
        ran = []

        def first():
            ran.append("first")
            scheduler.enqueue(lambda: ran.append("second"))

        scheduler.enqueue(first)
        for _ in range(3):
            await asyncio.sleep(0)
        self.assertEqual(ran, ["first", "second"])

    async def test_task_errors_are_reported(self):
        reported = []
        set_global_error_handler(lambda error, description=None: reported.append(description))
        try:
            scheduler = Scheduler()
            scheduler.enqueue(lambda: 1 / 0)
            scheduler.flush_now()
        finally:
            set_global_error_handler(global_error_handler)
        self.assertEqual(reported, ["Error executing scheduled task"])


class TestSchedulerWithoutLoop(unittest.TestCase):
    def test_host_flushes(self):
        scheduler = Scheduler()
        ran = []
        scheduler.enqueue(lambda: ran.append(1))
        self.assertFalse(scheduler.scheduled)
        scheduler.flush_now()
        self.assertEqual(ran, [1])


if __name__ == '__main__':
    unittest.main()
