"""
Unit tests for the GroupCache facade on in-memory stores.

Covers remember/forget on the object cache, persist/cease on the transient
scopes, the direct accessors and the global flush fallbacks.
"""

import pytest

from group_cache.facade import GroupCache
from group_cache.results import Failure
from group_cache.tests.utils import (
    ClearOnlyObjectStore,
    CountingCompute,
    InMemoryObjectStore,
    Toggle,
    UnflushableObjectStore,
    make_group_cache,
)


class TestRemember:

    def test_miss_computes_and_caches(self):
        gc = make_group_cache()
        compute = CountingCompute([1, 2, 3])

        assert gc.remember('posts', compute, 'blog', ttl=30) == [1, 2, 3]
        assert compute.calls == 1
        assert gc.get_cache('posts', 'blog') == ([1, 2, 3], True)
        assert gc.object_store.ttls[('test_blog', 'test_posts')] == 30

    def test_hit_skips_compute(self):
        gc = make_group_cache()
        gc.set_cache('posts', 'cached', 'blog')
        compute = CountingCompute('fresh')

        assert gc.remember('posts', compute, 'blog') == 'cached'
        assert compute.calls == 0

    def test_recomputes_after_group_flush(self):
        gc = make_group_cache()
        compute = CountingCompute('value')

        gc.remember('posts', compute, 'blog')
        gc.flush_group('blog')
        gc.remember('posts', compute, 'blog')

        assert compute.calls == 2

    @pytest.mark.parametrize('failure', [Failure('http_error', 'timeout'), ValueError('bad')])
    def test_failure_results_are_returned_not_cached(self, failure):
        gc = make_group_cache()

        assert gc.remember('posts', CountingCompute(failure), 'blog') is failure
        assert gc.get_cache('posts', 'blog') == (None, False)
        assert ('test_blog', 'test_posts') not in gc.object_store.data

    def test_raised_exceptions_propagate(self):
        gc = make_group_cache()

        def compute():
            raise RuntimeError('compute failed')

        with pytest.raises(RuntimeError, match='compute failed'):
            gc.remember('posts', compute, 'blog')

    def test_disabled_still_computes(self):
        gc = make_group_cache(toggle=Toggle(object=False))
        compute = CountingCompute('value')

        assert gc.remember('posts', compute, 'blog') == 'value'
        assert gc.remember('posts', compute, 'blog') == 'value'
        assert compute.calls == 2
        assert gc.object_store.data == {}

    def test_write_failure_does_not_change_result(self):
        store = InMemoryObjectStore()
        store.fail_on.add('set')
        gc = make_group_cache(object_store=store)

        assert gc.remember('posts', CountingCompute('value'), 'blog') == 'value'


class TestForget:

    def test_returns_and_deletes_cached_value(self):
        gc = make_group_cache()
        gc.set_cache('token', 'abc', 'auth')

        assert gc.forget('token', 'auth', default='none') == 'abc'
        assert gc.get_cache('token', 'auth') == (None, False)

    def test_returns_default_and_leaves_state_unchanged(self):
        gc = make_group_cache()
        gc.set_cache('other', 'x', 'auth')
        before = dict(gc.object_store.data)

        assert gc.forget('token', 'auth', default='none') == 'none'
        assert gc.object_store.data == before
        assert 'delete' not in gc.object_store.calls

    def test_stale_entry_returns_default(self):
        gc = make_group_cache()
        gc.set_cache('token', 'abc', 'auth')
        gc.flush_group('auth')

        assert gc.forget('token', 'auth') is None


class TestPersist:

    def test_local_scope(self):
        gc = make_group_cache()
        compute = CountingCompute({'usd': 1})

        assert gc.persist('rates', compute, ttl=3600) == {'usd': 1}
        assert gc.persist('rates', compute, ttl=3600) == {'usd': 1}
        assert compute.calls == 1
        assert gc.local_store.data == {'test_rates': {'usd': 1}}
        assert gc.local_store.ttls['test_rates'] == 3600
        assert gc.shared_store.data == {}

    def test_shared_scope_is_independent(self):
        gc = make_group_cache()
        gc.set_transient('rates', 'local')

        assert gc.persist('rates', CountingCompute('shared'), shared=True) == 'shared'
        assert gc.get_transient('rates') == ('local', True)
        assert gc.get_transient('rates', shared=True) == ('shared', True)

    def test_stored_false_is_a_hit(self):
        gc = make_group_cache()
        gc.set_transient('flag', False)
        compute = CountingCompute(True)

        assert gc.persist('flag', compute) is False
        assert compute.calls == 0

    def test_failure_results_are_not_stored(self):
        gc = make_group_cache()
        failure = Failure('quota')

        assert gc.persist('rates', CountingCompute(failure), shared=True) is failure
        assert gc.shared_store.data == {}

    def test_disabled_transients_always_compute(self):
        gc = make_group_cache(toggle=Toggle(transient=False))
        compute = CountingCompute('value')

        gc.persist('rates', compute)
        gc.persist('rates', compute)

        assert compute.calls == 2
        assert gc.set_transient('rates', 'value') is False
        assert gc.local_store.data == {}


class TestCease:

    def test_returns_and_deletes(self):
        gc = make_group_cache()
        gc.set_transient('otp', '1234', shared=True)

        assert gc.cease('otp', shared=True) == '1234'
        assert gc.get_transient('otp', shared=True) == (None, False)

    def test_returns_default_when_absent(self):
        gc = make_group_cache()
        assert gc.cease('otp', default='expired') == 'expired'
        assert 'delete' not in gc.local_store.calls

    def test_delete_transient_ignores_enablement(self):
        toggle = Toggle()
        gc = make_group_cache(toggle=toggle)
        gc.set_transient('otp', '1234')
        toggle.enabled['transient'] = False

        assert gc.delete_transient('otp') is True
        assert gc.local_store.data == {}


class TestUnusableKeys:

    @pytest.mark.parametrize('key, group', [('version', 'g'), ('', 'g'), (None, 'g'), ('a', 'x:y')])
    def test_remember_bypasses_cache(self, key, group):
        gc = make_group_cache()
        compute = CountingCompute('value')

        assert gc.remember(key, compute, group) == 'value'
        assert gc.remember(key, compute, group) == 'value'
        assert compute.calls == 2
        assert gc.object_store.data == {}

    @pytest.mark.parametrize('key', ['version', '', 1.5])
    def test_forget_returns_default(self, key):
        gc = make_group_cache()
        gc.set_cache('a', '1', 'g')

        assert gc.forget(key, 'g', default='fallback') == 'fallback'
        assert gc.get_cache('a', 'g') == ('1', True)

    @pytest.mark.parametrize('key', ['', None, ['a']])
    def test_persist_bypasses_cache(self, key):
        gc = make_group_cache()
        compute = CountingCompute('value')

        assert gc.persist(key, compute) == 'value'
        assert gc.persist(key, compute) == 'value'
        assert compute.calls == 2
        assert gc.local_store.data == {}

    @pytest.mark.parametrize('key', ['', None])
    def test_cease_returns_default(self, key):
        gc = make_group_cache()

        assert gc.cease(key, default='fallback') == 'fallback'

    def test_accessors_degrade(self):
        gc = make_group_cache()

        assert gc.set_cache('version', '1', 'g') is False
        assert gc.get_cache('version', 'g') == (None, False)
        assert gc.delete_cache('', 'g') is False
        assert gc.flush_group('a:b') is None
        assert gc.set_transient('', '1') is False
        assert gc.delete_transient(None) is False

    def test_version_is_a_valid_transient_key(self):
        gc = make_group_cache()
        compute = CountingCompute('value')

        assert gc.persist('version', compute, shared=True) == 'value'
        assert gc.persist('version', compute, shared=True) == 'value'
        assert compute.calls == 1
        assert gc.shared_store.data == {'test_version': 'value'}
        assert gc.cease('version', shared=True) == 'value'


class TestFlush:

    def test_prefers_store_flush(self):
        gc = make_group_cache()
        gc.set_cache('a', '1', 'g')

        gc.flush()

        assert 'flush' in gc.object_store.calls
        assert gc.get_cache('a', 'g') == (None, False)

    def test_falls_back_to_clear(self):
        store = ClearOnlyObjectStore()
        gc = make_group_cache(object_store=store)
        gc.set_cache('a', '1', 'g')

        gc.flush()

        assert 'clear' in store.calls
        assert store.data == {}

    def test_noop_without_flush_capability(self):
        store = UnflushableObjectStore()
        gc = make_group_cache(object_store=store)
        gc.set_cache('a', '1', 'g')

        gc.flush()

        assert gc.get_cache('a', 'g') == ('1', True)

    def test_flush_failure_is_absorbed(self):
        store = InMemoryObjectStore()
        store.fail_on.add('flush')
        gc = make_group_cache(object_store=store)

        gc.flush()

        assert gc.metrics.snapshot()['errors'] == {'flush': 1}


class TestAccessors:

    def test_prefix_applies_to_keys_and_groups(self):
        gc = make_group_cache(prefix='shop')
        gc.set_cache('cart', 'items', 'users')

        assert ('shop_users', 'shop_cart') in gc.object_store.data
        assert gc.object_store.data[('shop_users', 'shop_version')] == 1

    def test_force_flag_reaches_store(self):
        gc = make_group_cache()
        gc.set_cache('a', '1', 'g')

        gc.get_cache('a', 'g', force=True)

        assert gc.object_store.force_refresh_calls[-1] is True

    def test_flush_group_returns_new_version(self):
        gc = make_group_cache()
        gc.set_cache('a', '1', 'g')

        assert gc.flush_group('g') == 2
        assert gc.flush_group('g') == 3

    def test_delete_cache(self):
        gc = make_group_cache()
        gc.set_cache('a', '1', 'g')

        assert gc.delete_cache('a', 'g') is True
        assert gc.delete_cache('a', 'g') is False

    def test_invalid_prefix(self):
        with pytest.raises(ValueError):
            GroupCache(InMemoryObjectStore(), None, None, prefix='')
