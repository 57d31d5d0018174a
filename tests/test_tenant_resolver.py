from comanda.services.tenant_resolver import TenantResolver
from comanda.whatsapp.base import ChannelCredentials


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class CountingLoader:
    def __init__(self, known):
        self.known = known
        self.calls = []

    def __call__(self, phone_number_id):
        self.calls.append(phone_number_id)
        return self.known.get(phone_number_id)


def _channel(phone_number_id, business_id):
    return ChannelCredentials(
        phone_number_id=phone_number_id,
        access_token=f"token-{phone_number_id}",
        business_id=business_id,
    )


def test_resolve_uses_cache_until_ttl_expires() -> None:
    clock = FakeClock()
    loader = CountingLoader({"111": _channel("111", 1)})
    resolver = TenantResolver(loader, ttl_seconds=60, clock=clock)

    first = resolver.resolve("111")
    second = resolver.resolve("111")

    assert first.business_id == 1
    assert second is first
    assert loader.calls == ["111"]

    clock.now += 61
    resolver.resolve("111")
    assert loader.calls == ["111", "111"]


def test_unknown_channel_miss_is_cached_too() -> None:
    loader = CountingLoader({})
    resolver = TenantResolver(loader, ttl_seconds=60, clock=FakeClock())

    assert resolver.resolve("999") is None
    assert resolver.resolve("999") is None
    assert loader.calls == ["999"]


def test_empty_phone_number_id_never_hits_loader() -> None:
    loader = CountingLoader({})
    resolver = TenantResolver(loader, clock=FakeClock())

    assert resolver.resolve(None) is None
    assert resolver.resolve("") is None
    assert loader.calls == []


def test_invalidate_forces_reload() -> None:
    loader = CountingLoader({"111": _channel("111", None)})
    resolver = TenantResolver(loader, ttl_seconds=300, clock=FakeClock())

    assert resolver.resolve("111").business_id is None
    loader.known["111"] = _channel("111", 7)
    resolver.invalidate("111")

    assert resolver.resolve("111").business_id == 7
    assert len(loader.calls) == 2


def test_cache_is_bounded() -> None:
    clock = FakeClock()
    loader = CountingLoader({})
    resolver = TenantResolver(loader, ttl_seconds=60, max_entries=3, clock=clock)

    for index in range(10):
        clock.now += 1
        resolver.resolve(str(index))

    assert len(resolver) <= 3


def test_invalidate_during_load_does_not_cache_stale_value() -> None:
    loads = []

    def loader(phone_number_id):
        loads.append(phone_number_id)
        if len(loads) == 1:
            # el canal se vincula mientras esta lectura sigue en curso
            resolver.invalidate(phone_number_id)
            return _channel(phone_number_id, None)
        return _channel(phone_number_id, 7)

    resolver = TenantResolver(loader, ttl_seconds=300, clock=FakeClock())

    assert resolver.resolve("111").business_id is None
    assert len(resolver) == 0
    assert resolver.resolve("111").business_id == 7
    assert resolver.resolve("111").business_id == 7
    assert len(loads) == 2
