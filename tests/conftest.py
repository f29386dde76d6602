"""测试共享 fixture"""

from __future__ import annotations

import pytest

from vendorkit.core.config import reset_config
from vendorkit.utils.logger import reset_logging


@pytest.fixture(autouse=True)
def _isolate_globals():
    """每个用例前后重置全局配置与日志 handlers"""
    reset_config()
    yield
    reset_config()
    reset_logging()
