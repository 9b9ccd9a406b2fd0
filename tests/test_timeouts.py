import asyncio
import pytest
from core.errors import FaceAuthError, OperationTimeout
from core.timeouts import with_timeout


def test_with_timeout_returns_value():
    async def quick():
        return 42
    assert asyncio.run(with_timeout(quick(), 1.0, "quick")) == 42


def test_with_timeout_raises_typed_failure():
    async def stuck():
        await asyncio.sleep(10)

    with pytest.raises(OperationTimeout) as ei:
        asyncio.run(with_timeout(stuck(), 0.01, "stuck call"))
    assert isinstance(ei.value, FaceAuthError)
    assert "stuck call" in str(ei.value)


def test_with_timeout_disabled():
    async def quick():
        await asyncio.sleep(0)
        return "ok"
    assert asyncio.run(with_timeout(quick(), None, "quick")) == "ok"
