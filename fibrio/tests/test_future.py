from fibrio.exceptions import FutureStateError
from fibrio.future import Future, Thunk, gather
from fibrio.tests.trio_test_case import TrioTestCase
import outcome
import trio
import unittest

class TestFuture(unittest.TestCase):
    def test_callbacks_run_in_order_when_settled(self) -> None:
        fut = Future[int]()
        log = []
        fut.add_done_callback(lambda r: log.append(('first', r.value)))
        fut.add_done_callback(lambda r: log.append(('second', r.value)))
        self.assertFalse(fut.done)
        self.assertEqual(log, [])
        fut.resolve(3)
        self.assertEqual(log, [('first', 3), ('second', 3)])
        # added after settling, runs immediately
        fut.add_done_callback(lambda r: log.append(('late', r.value)))
        self.assertEqual(log[-1], ('late', 3))

    def test_result(self) -> None:
        fut = Future[int]()
        with self.assertRaises(FutureStateError):
            fut.result()
        exn = KeyError("k")
        fut.reject(exn)
        for _ in range(2):
            with self.assertRaises(KeyError) as cm:
                fut.result()
            self.assertIs(cm.exception, exn)

    def test_settle_twice(self) -> None:
        fut = Future[int]()
        fut.resolve(1)
        with self.assertRaises(FutureStateError):
            fut.resolve(2)
        with self.assertRaises(FutureStateError):
            fut.reject(ValueError())
        self.assertEqual(fut.result(), 1)

    def test_progress(self) -> None:
        fut = Future[int]()
        seen = []
        fut.add_progress_callback(seen.append)
        fut.progress(1)
        fut.progress(2)
        fut.resolve(3)
        fut.progress(4)
        self.assertEqual(seen, [1, 2])

    def test_gather_order(self) -> None:
        futures = [Future[str]() for _ in range(3)]
        combined = gather(futures)
        futures[2].resolve('c')
        futures[0].resolve('a')
        self.assertFalse(combined.done)
        futures[1].resolve('b')
        self.assertEqual(combined.result(), ['a', 'b', 'c'])

    def test_gather_first_rejection_wins(self) -> None:
        futures = [Future[str]() for _ in range(3)]
        combined = gather(futures)
        first, second = ValueError("first"), ValueError("second")
        futures[1].reject(first)
        futures[0].reject(second)
        futures[2].resolve('c')
        self.assertIs(combined.outcome.error, first)

    def test_gather_empty(self) -> None:
        self.assertEqual(gather([]).result(), [])

    def test_gather_rejects_non_futures(self) -> None:
        with self.assertRaises(TypeError):
            gather([Future(), 3])

    def test_thunk_starts_once(self) -> None:
        starts = []
        fut = Future[int]()
        def start() -> Future[int]:
            starts.append(None)
            return fut
        thunk = Thunk(start)
        self.assertFalse(thunk.started)
        self.assertIs(thunk(), fut)
        self.assertIs(thunk(), fut)
        self.assertTrue(thunk.started)
        self.assertEqual(len(starts), 1)

class TestFutureWait(TrioTestCase):
    async def test_wait(self) -> None:
        fut = self.host.sleep(0)
        self.assertIsNone(await fut.wait())
        # and again, once settled
        self.assertIsNone(await fut.wait())

    async def test_wait_error(self) -> None:
        async def fail() -> None:
            raise ValueError("nope")
        fut = self.host.spawn(fail)
        with self.assertRaises(ValueError):
            await fut.wait()

    async def test_many_waiters(self) -> None:
        fut = Future[int]()
        results = []
        async def waiter() -> None:
            results.append(await fut.wait())
        async with trio.open_nursery() as nursery:
            for _ in range(3):
                nursery.start_soon(waiter)
            await trio.sleep(0)
            fut.resolve(5)
        self.assertEqual(results, [5, 5, 5])

    async def test_wait_cancelled(self) -> None:
        fut = Future[int]()
        with trio.move_on_after(0.001):
            await fut.wait()
        # the future no longer holds on to the cancelled waiter
        self.assertEqual(fut._callbacks, [])
        fut.resolve(1)
        self.assertEqual(await fut.wait(), 1)

class TestTrioHost(TrioTestCase):
    async def test_spawn(self) -> None:
        async def double(x: int) -> int:
            await trio.sleep(0)
            return x * 2
        self.assertEqual(await self.host.spawn(double, 21).wait(), 42)

    async def test_call_soon(self) -> None:
        log = []
        fut = self.host.call_soon(log.append, 'called')
        self.assertEqual(log, [])
        await fut.wait()
        self.assertEqual(log, ['called'])
