"""
ShipWatch 后端模块

船舶机舱监测系统后端，包含：
- 数据库模型和配置
- 阈值评估与告警生成核心（alarm 子包）
- 告警/阈值业务服务
- API路由和接口

Author: ShipWatch Team
License: MIT
"""
__all__ = ["config", "db", "models", "schemas", "main"]
