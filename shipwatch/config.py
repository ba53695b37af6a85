"""
ShipWatch 配置模块

从环境变量（以及项目根目录下的 .env 文件）读取运行配置。

配置项：
- DB_URL / DATABASE_URL: 数据库连接URL，默认 sqlite:///shipwatch.db
- LOG_LEVEL: 日志级别
- ALARM_BREACH_POLICY: 多阈值同时越限时的告警策略，all（全部上报）/ most_severe（仅最严重）
- ALARM_ENFORCE_DURATION: 是否启用阈值的持续时间判定
- STREAM_LANES: 流式评估的并行通道数（按设备分片）
- RULE_REFRESH_SECONDS: 流式评估中阈值索引的刷新间隔
- ALARM_WRITE_ATTEMPTS / ALARM_RETRY_BASE_DELAY: 告警写入的最大尝试次数（含首次写入）与退避基数（秒）
- SAMPLE_SEED: 示例数据生成的随机种子

Author: ShipWatch Team
License: MIT
"""
import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("true", "1", "yes", "y", "t")


@dataclass
class Settings:
    # 数据库
    # 优先级：DB_URL > DATABASE_URL > 默认SQLite
    DB_URL: str = field(
        default_factory=lambda: os.getenv("DB_URL") or os.getenv("DATABASE_URL") or "sqlite:///shipwatch.db"
    )

    # 服务
    HOST: str = field(default_factory=lambda: os.getenv("HOST", "0.0.0.0"))
    PORT: int = field(default_factory=lambda: int(os.getenv("PORT", "8000")))
    LOG_LEVEL: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "info"))

    # 告警评估
    ALARM_BREACH_POLICY: str = field(default_factory=lambda: os.getenv("ALARM_BREACH_POLICY", "all"))
    ALARM_ENFORCE_DURATION: bool = field(default_factory=lambda: _env_bool("ALARM_ENFORCE_DURATION", "true"))
    STREAM_LANES: int = field(default_factory=lambda: int(os.getenv("STREAM_LANES", "4")))
    RULE_REFRESH_SECONDS: float = field(default_factory=lambda: float(os.getenv("RULE_REFRESH_SECONDS", "30")))

    # 告警持久化重试
    ALARM_WRITE_ATTEMPTS: int = field(default_factory=lambda: int(os.getenv("ALARM_WRITE_ATTEMPTS", "3")))
    ALARM_RETRY_BASE_DELAY: float = field(default_factory=lambda: float(os.getenv("ALARM_RETRY_BASE_DELAY", "0.2")))

    # 示例数据
    SAMPLE_SEED: int = field(default_factory=lambda: int(os.getenv("SAMPLE_SEED", "42")))

    @property
    def log_level(self) -> int:
        """LOG_LEVEL 对应的 logging 数值级别，无法识别时回退为 INFO"""
        return getattr(logging, self.LOG_LEVEL.upper(), logging.INFO)


settings = Settings()
