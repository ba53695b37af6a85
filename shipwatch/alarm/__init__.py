"""
ShipWatch 告警核心

阈值评估到告警生成的流水线：

    监测数据 + 阈值规则 -> 阈值索引(index) -> 阈值评估(evaluator)
        -> 持续时间判定(duration) -> 告警策略(base) -> 告警生成(materializer) -> 告警存储

- batch: 批量全量重算（一次性作业）
- stream: 流式逐条评估（按设备分片的并行通道）
- data_service: 从数据库加载规则/数据、写入告警

Author: ShipWatch Team
License: MIT
"""
