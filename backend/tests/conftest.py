import os
import sys

import pytest
from dotenv import load_dotenv

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# 中文注释:
# - 单元测试全部使用内存/假客户端，不需要真实 Supabase；
# - 仍然加载 .env，便于本地调试时复用同一份配置。
load_dotenv()

from tests.utils.workflow_store import InMemoryWorkflowStore  # noqa: E402


@pytest.fixture
def workflow_store() -> InMemoryWorkflowStore:
    return InMemoryWorkflowStore()


@pytest.fixture(autouse=True)
def _isolate_workflow_env(monkeypatch):
    """避免开发机上的 WORKFLOW_* 变量影响断言。"""
    monkeypatch.delenv("WORKFLOW_TIMEZONE", raising=False)
    monkeypatch.delenv("WORKFLOW_LOG_EVENTS", raising=False)
