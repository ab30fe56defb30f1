import os
from dataclasses import dataclass
from datetime import timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def _env_bool(key: str, default: bool) -> bool:
    raw = os.environ.get(key)
    if raw is None:
        return default
    lowered = raw.strip().lower()
    return lowered in {"1", "true", "yes", "y", "on"}


@dataclass(frozen=True)
class AppConfig:
    """
    Application Environment Config
    """
    env: str  # 'development', 'staging', 'production'
    is_staging: bool
    supabase_url: str
    supabase_key: str

    @staticmethod
    def from_env() -> "AppConfig":
        env = (os.environ.get("APP_ENV") or "development").strip().lower()
        supabase_url = (os.environ.get("SUPABASE_URL") or "").strip()
        supabase_key = (os.environ.get("SUPABASE_SERVICE_ROLE_KEY") or "").strip()

        return AppConfig(
            env=env,
            is_staging=env == "staging",
            supabase_url=supabase_url,
            supabase_key=supabase_key,
        )


# Global Config Instance
app_config = AppConfig.from_env()


@dataclass(frozen=True)
class WorkflowConfig:
    """
    工作流核心配置

    中文注释:
    1) timezone 决定“今天”按哪个时区计算（逾期判断只看日历日，不看时分秒）。
    2) log_events 控制自动登记参与者时是否写 submission_event_logs。
    3) 非法值一律回退默认值，不在启动时抛错。
    """

    timezone: tzinfo
    log_events: bool

    @staticmethod
    def from_env() -> "WorkflowConfig":
        tz_name = (os.environ.get("WORKFLOW_TIMEZONE") or "").strip()
        tz: tzinfo = timezone.utc
        if tz_name and tz_name.upper() != "UTC":
            try:
                tz = ZoneInfo(tz_name)
            except (ZoneInfoNotFoundError, ValueError):
                tz = timezone.utc

        return WorkflowConfig(
            timezone=tz,
            log_events=_env_bool("WORKFLOW_LOG_EVENTS", True),
        )
