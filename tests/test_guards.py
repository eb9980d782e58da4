import asyncio
import unittest
import sys
import os

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '../')))

from waypoint import ComponentResolutionFailed, Router, RouteRecord, lazy
from waypoint.components import HookSource, declared_props
from waypoint.core import Scheduler
from waypoint.guards import (
    bind_guard,
    extract_guards,
    extract_leave_guards,
    extract_update_guards,
    wait_for_instance,
)
from router_support import Instance, TableMatcher, component, flush


def noop_guard(*args):
    args[-1]()


class TestHookSource(unittest.TestCase):
    def test_function_component_attributes(self):
        comp = component("Page", before_route_leave=noop_guard)
        self.assertEqual(HookSource(comp).get_hooks("before_route_leave"), [noop_guard])
        self.assertEqual(HookSource(comp).get_hooks("before_route_enter"), [])

    def test_mapping_descriptor_with_hook_list(self):
        first, second = (lambda *a: None), (lambda *a: None)
        source = HookSource({"before_route_update": [first, None, second]})
        self.assertEqual(source.get_hooks("before_route_update"), [first, second])

    def test_class_component(self):
        class Page:
            def before_route_leave(self, to, from_route, proceed):
                proceed()

        self.assertEqual(HookSource(Page).get_hooks("before_route_leave"), [Page.before_route_leave])

    def test_lazy_component_has_no_hooks_until_loaded(self):
        self.assertEqual(HookSource(lazy(lambda: None)).get_hooks("before_route_enter"), [])

    def test_declared_props(self):
        comp = component("Page")
        comp.__props__ = {"id": str}
        self.assertEqual(declared_props(comp), {"id": str})
        self.assertEqual(declared_props({"props": ["id", "tab"]}), {"id": None, "tab": None})
        self.assertIsNone(declared_props(component("Bare")))


class TestExtractGuards(unittest.TestCase):
    def setUp(self):
        self.calls = []

        def make(label):
            def guard(instance, to, from_route, proceed):
                self.calls.append((label, instance.name))
            guard.__name__ = label
            return guard

        self.parent = RouteRecord("/p", components={
            "default": component("P", before_route_leave=make("p.default")),
            "aside": component("PA", before_route_leave=[make("p.aside.1"), make("p.aside.2")]),
        })
        self.child = RouteRecord("/p/c", component=component("C", before_route_leave=make("c")))
        self.parent.instances.register("default", Instance("p"))
        self.parent.instances.register("aside", Instance("pa"))
        self.child.instances.register("default", Instance("c"))

    def run_guards(self, guards):
        for guard in guards:
            guard(None, None, lambda *a: None)

    def test_leave_guards_innermost_first(self):
        self.run_guards(extract_leave_guards([self.parent, self.child]))
        self.assertEqual(self.calls, [
            ("c", "c"),
            ("p.aside.1", "pa"),
            ("p.aside.2", "pa"),
            ("p.default", "p"),
        ])

    def test_registration_order_without_reverse(self):
        self.run_guards(extract_guards([self.parent, self.child], "before_route_leave", bind_guard))
        self.assertEqual([label for label, _ in self.calls], ["p.default", "p.aside.1", "p.aside.2", "c"])

    def test_guards_without_instance_are_dropped(self):
        self.child.instances.unregister("default")
        self.run_guards(extract_leave_guards([self.child]))
        self.assertEqual(self.calls, [])

    def test_update_guards_need_matching_hook(self):
        self.assertEqual(extract_update_guards([self.parent, self.child]), [])


class TestEnterGuards(unittest.IsolatedAsyncioTestCase):
    def make_router(self, *records):
        self.scheduler = Scheduler()
        return Router(TableMatcher(list(records)), scheduler=self.scheduler)

    async def test_callback_receives_instance_registered_after_commit(self):
        seen = []

        def enter(to, from_route, proceed):
            proceed(lambda vm: seen.append(vm))

        home = RouteRecord("/", component=component("Home"))
        page = RouteRecord("/page", component=component("Page", before_route_enter=enter))
        router = self.make_router(home, page)
        router.init("/")

        self.assertTrue(await router.navigate("/page"))
        await flush()
        self.assertEqual(seen, [])

        instance = Instance("page")
        page.instances.register("default", instance)
        await flush()
        self.assertEqual(seen, [instance])

    async def test_callback_runs_immediately_when_instance_exists(self):
        seen = []
        page = RouteRecord("/page", component=component(
            "Page", before_route_enter=lambda to, from_route, proceed: proceed(seen.append)))
        instance = Instance("page")
        page.instances.register("default", instance)
        router = self.make_router(page)

        self.assertTrue(await router.navigate("/page"))
        self.assertEqual(seen, [])
        await flush()
        self.assertEqual(seen, [instance])

    async def test_instance_being_destroyed_is_skipped(self):
        seen = []
        page = RouteRecord("/page", component=component(
            "Page", before_route_enter=lambda to, from_route, proceed: proceed(seen.append)))
        dying = Instance("old")
        dying.is_being_destroyed = True
        page.instances.register("default", dying)
        router = self.make_router(page)

        await router.navigate("/page")
        await flush()
        self.assertEqual(seen, [])

        fresh = Instance("new")
        page.instances.register("default", fresh)
        await flush()
        self.assertEqual(seen, [fresh])

    async def test_callback_dropped_when_another_route_commits(self):
        seen = []
        page = RouteRecord("/page", component=component(
            "Page", before_route_enter=lambda to, from_route, proceed: proceed(seen.append)))
        other = RouteRecord("/other", component=component("Other"))
        router = self.make_router(page, other)

        await router.navigate("/page")
        await flush()
        self.assertTrue(await router.navigate("/other"))
        await flush()

        page.instances.register("default", Instance("late"))
        await flush()
        self.assertEqual(seen, [])

    async def test_wait_for_instance_gives_up_when_invalid(self):
        record = RouteRecord("/x", component=component("X"))
        valid = [True]
        task = asyncio.ensure_future(
            wait_for_instance(lambda vm: None, record.instances, "default", lambda: valid[0]))
        await flush()
        self.assertFalse(task.done())
        valid[0] = False
        record.instances.wake()
        self.assertFalse(await task)


class TestAsyncComponents(unittest.IsolatedAsyncioTestCase):
    async def test_lazy_components_resolve_before_enter_guards(self):
        order = []

        def enter(to, from_route, proceed):
            order.append("enter")
            proceed()

        async def load_page():
            await asyncio.sleep(0)
            order.append("loaded")
            return component("Page", before_route_enter=enter)

        sidebar = component("Sidebar")
        page = RouteRecord("/page", components={
            "default": lazy(load_page),
            "sidebar": lazy(lambda: sidebar),
        })
        router = Router(TableMatcher([page]), scheduler=Scheduler())
        router.before_resolve(lambda to, from_route, proceed: (order.append("resolve"), proceed()))

        self.assertTrue(await router.navigate("/page"))
        self.assertEqual(order, ["loaded", "enter", "resolve"])
        self.assertIs(page.components["sidebar"], sidebar)
        self.assertEqual(page.components["default"].__name__, "Page")
        self.assertFalse(page.has_lazy_components())

    async def test_failed_load_aborts_with_error(self):
        def broken():
            raise ImportError("no module")

        page = RouteRecord("/page", component=lazy(broken))
        router = Router(TableMatcher([page]), scheduler=Scheduler())
        errors = []
        router.on_error(errors.append)

        with self.assertRaises(ComponentResolutionFailed) as ctx:
            await router.navigate("/page", raise_on_failure=True)
        self.assertIs(ctx.exception.record, page)
        self.assertEqual(ctx.exception.slot, "default")
        self.assertIsInstance(ctx.exception.__cause__, ImportError)
        self.assertEqual(errors, [ctx.exception])
        self.assertEqual(router.current.matched, ())


if __name__ == '__main__':
    unittest.main()
