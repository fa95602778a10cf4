from fibrio import async_, async_cps, async_iterable, await_, yield_, Config, AsyncFactory, Mod, Protocol
from fibrio.future import Future
from fibrio.iterator import Step
import outcome
import typing as t
import unittest

def _affix(base: Protocol, options: t.Mapping[str, t.Any]) -> t.Mapping[str, t.Callable]:
    prefix = options.get('prefix', '')
    suffix = options.get('suffix', '')
    def end(ctx, error, value) -> None:
        if error is not None:
            base.end(ctx, ValueError(prefix + str(error) + suffix), None)
        else:
            base.end(ctx, None, prefix + value + suffix)
    return {'end': end}

affix_mod = Mod('affix', _affix)

def _append(letter: str) -> Mod:
    def override(base: Protocol, options: t.Mapping[str, t.Any]) -> t.Mapping[str, t.Callable]:
        def end(ctx, error, value) -> None:
            base.end(ctx, error, value + letter)
        return {'end': end}
    return Mod('append-' + letter, override)

class TestMod(unittest.TestCase):
    def test_mod_without_changes(self) -> None:
        a2 = async_.mod()
        self.assertIsNot(a2, async_)
        self.assertEqual(a2.protocol, async_.protocol)
        fn = a2(lambda n: 111 * n)
        self.assertEqual(fn(7).result(), 777)

    def test_layered_protocol(self) -> None:
        body = lambda msg: msg
        self.assertEqual(async_.mod(affix_mod)(body)('BLAH!').result(), 'BLAH!')
        prefixed = async_.mod(affix_mod).mod(options={'prefix': '<<<', 'suffix': '>>>'})
        self.assertEqual(prefixed(body)('BLAH!').result(), '<<<BLAH!>>>')
        # the base variant is unaffected
        self.assertEqual(async_(body)('X').result(), 'X')

    def test_layer_rewrites_errors(self) -> None:
        prefixed = async_.mod(affix_mod, options={'prefix': 'E: '})
        def body() -> None:
            raise KeyError
        error = prefixed(body)().outcome.error
        self.assertIsInstance(error, ValueError)
        self.assertTrue(str(error).startswith('E: '))

    def test_default_options(self) -> None:
        hashed = async_.mod(Mod('hash', _affix, {'prefix': '#'}))
        self.assertEqual(hashed(lambda x: x)('X').result(), '#X')
        overridden = hashed.mod(options={'prefix': '@'})
        self.assertEqual(overridden(lambda x: x)('X').result(), '@X')
        # explicit options at the same time as the mod win over its defaults
        explicit = async_.mod(Mod('hash', _affix, {'prefix': '#'}), options={'prefix': '$'})
        self.assertEqual(explicit(lambda x: x)('X').result(), '$X')

    def test_later_mods_wrap_earlier_ones(self) -> None:
        factory = async_.mod(_append('a')).mod(_append('b'))
        self.assertEqual(factory(lambda: 'x')().result(), 'xba')
        self.assertEqual(factory.protocol.name, 'append-b(append-a(future))')

    def test_layer_over_callback_variant(self) -> None:
        results: t.List[outcome.Outcome] = []
        fn = async_cps.mod(affix_mod, options={'prefix': '>'})(lambda x: x)
        fn('X', results.append)
        self.assertEqual(results, [outcome.Value('>X')])

    def test_layer_over_iterable(self) -> None:
        def override(base, options):
            def suspend(ctx, error, value) -> None:
                base.suspend(ctx, error, value * 10)
            return {'suspend': suspend}
        @async_iterable.mod(Mod('times-ten', override))
        def body() -> str:
            yield_(1)
            yield_(2)
            return 'done'
        seen: t.List[int] = []
        self.assertEqual(body().for_each(seen.append).result(), 'done')
        self.assertEqual(seen, [10, 20])

    def test_layer_begin(self) -> None:
        calls = []
        def override(base, options):
            def begin(ctx):
                calls.append(ctx.args)
                return base.begin(ctx)
            return {'begin': begin}
        fn = async_.mod(Mod('log-calls', override))(lambda a, b: a + b)
        self.assertEqual(fn(1, 2).result(), 3)
        self.assertEqual(calls, [(1, 2)])

    def test_unknown_hook(self) -> None:
        with self.assertRaises(TypeError):
            async_.protocol.layer(finish=lambda ctx, error, value: None)

class TestCustomProtocol(unittest.TestCase):
    def test_replacement_base_protocol(self) -> None:
        "A protocol which hands back a list that collects everything the body produces"
        def begin(ctx) -> t.List[t.Any]:
            collected = ctx.protocol_context = []
            ctx.start()
            return collected
        def suspend(ctx, error, value) -> None:
            ctx.protocol_context.append(value)
        def end(ctx, error, value) -> None:
            ctx.protocol_context.append(error if error is not None else value)
        factory = AsyncFactory(Config(protocol=Protocol(begin, suspend, end, name='collect')))
        gate = Future[int]()
        @factory
        def body() -> str:
            yield_(1)
            yield_(await_(gate))
            return 'end'
        collected = body()
        self.assertEqual(collected, [1])
        gate.resolve(2)
        self.assertEqual(collected, [1, 2, 'end'])
