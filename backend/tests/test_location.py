import pytest

from conftest import ScriptedProvider, reading

from cybercheck.config import Settings
from cybercheck.gps.location import (
    LocationError,
    LocationErrorKind,
    LocationSource,
    ReplayLocationProvider,
)


@pytest.mark.asyncio
async def test_high_accuracy_first():
    provider = ScriptedProvider([reading()])
    source = LocationSource(provider)

    assert await source.acquire() == reading()
    assert provider.requests == [(True, 20000, 0)]


@pytest.mark.asyncio
async def test_timeout_retries_once_with_low_accuracy():
    provider = ScriptedProvider([LocationError(LocationErrorKind.TIMEOUT), reading(accuracy=45.0)])
    source = LocationSource(provider)

    result = await source.acquire()

    assert result.accuracy_meters == 45.0
    assert provider.requests == [(True, 20000, 0), (False, 15000, 30000)]


@pytest.mark.asyncio
async def test_second_timeout_propagates():
    provider = ScriptedProvider([
        LocationError(LocationErrorKind.TIMEOUT),
        LocationError(LocationErrorKind.TIMEOUT),
    ])

    with pytest.raises(LocationError) as exc:
        await LocationSource(provider).acquire()

    assert exc.value.kind is LocationErrorKind.TIMEOUT
    assert provider.calls == 2


@pytest.mark.asyncio
@pytest.mark.parametrize("kind", [LocationErrorKind.PERMISSION_DENIED, LocationErrorKind.POSITION_UNAVAILABLE])
async def test_permission_and_unavailable_are_not_retried(kind):
    provider = ScriptedProvider([LocationError(kind)])

    with pytest.raises(LocationError) as exc:
        await LocationSource(provider).acquire()

    assert exc.value.kind is kind
    assert provider.calls == 1


def test_from_settings_uses_configured_timeouts():
    settings = Settings(
        GPS_HIGH_ACCURACY_TIMEOUT_MS=18000,
        GPS_LOW_ACCURACY_TIMEOUT_MS=9000,
        GPS_LOW_ACCURACY_MAX_AGE_MS=25000,
    )
    source = LocationSource.from_settings(ScriptedProvider([]), settings)

    assert source.high_accuracy_timeout_ms == 18000
    assert source.low_accuracy_timeout_ms == 9000
    assert source.low_accuracy_max_age_ms == 25000


def test_error_message_carries_remediation_hint():
    err = LocationError(LocationErrorKind.PERMISSION_DENIED)
    assert err.message == "Location permission was denied"
    assert "browser settings" in err.user_message()


@pytest.mark.asyncio
async def test_replay_provider_serves_in_order_then_runs_dry():
    first, second = reading(ts=1), reading(ts=2)
    provider = ReplayLocationProvider([first, second])

    assert await provider.get_position(True, 20000, 0) == first
    assert await provider.get_position(True, 20000, 0) == second
    assert provider.remaining == 0

    with pytest.raises(LocationError) as exc:
        await provider.get_position(True, 20000, 0)

    assert exc.value.kind is LocationErrorKind.POSITION_UNAVAILABLE
    assert provider.calls == 3
