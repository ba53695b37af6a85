"""
ShipWatch 主应用入口

FastAPI应用主文件，负责：
- 日志初始化
- 数据库表创建
- 流式告警评估的启动与停止（应用生命周期）
- 路由注册
- 健康检查接口

Author: ShipWatch Team
License: MIT
"""

import logging
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from .alarm.data_service import SqlAlarmSink, make_rule_loader
from .alarm.stream import RuleIndexCache, StreamEvaluator
from .config import settings
from .db import Base, SessionLocal, engine
from .routers import alarms, equipment, monitoring, thresholds

log = logging.getLogger(__name__)


def create_app(
    session_factory: Callable[[], Session] = SessionLocal,
    bind: Optional[Engine] = None,
) -> FastAPI:
    """
    创建FastAPI应用

    Args:
        session_factory: 流式告警评估使用的数据库会话工厂（接口的会话由 get_db 依赖提供）
        bind: 创建数据表使用的数据库引擎，默认使用全局引擎
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # 初始化数据库表结构（如果不存在则创建）
        Base.metadata.create_all(bind=bind or engine)

        rule_cache = RuleIndexCache(make_rule_loader(session_factory))
        evaluator = StreamEvaluator(rule_cache, SqlAlarmSink(session_factory))
        app.state.rule_cache = rule_cache
        app.state.stream_evaluator = evaluator
        log.info(
            "流式告警评估已启动: 通道数=%d, 策略=%s, 持续时间判定=%s",
            evaluator.lane_count, evaluator.policy.name, evaluator.enforce_duration,
        )
        try:
            yield
        finally:
            evaluator.shutdown(wait_for_pending=True)

    app = FastAPI(
        title="ShipWatch",
        description="船舶机舱监测系统的阈值告警服务",
        version="1.0.0",
        lifespan=lifespan,
    )

    # 注册路由模块
    app.include_router(equipment.router)   # 设备管理：/equipment/*
    app.include_router(thresholds.router)  # 阈值配置：/api/thresholds/*
    app.include_router(alarms.router)      # 告警管理：/api/alarms/*
    app.include_router(monitoring.router)  # 监测数据上报：/api/monitoring/*

    @app.get("/health")
    def health():
        """
        健康检查接口

        Returns:
            Dict: 健康状态，status 为 "ok" 表示正常
        """
        return {"status": "ok"}

    return app


logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

app = create_app()


# 支持直接运行（开发模式）
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "shipwatch.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=True,
        log_level=settings.LOG_LEVEL.lower(),
    )
