"""
生成示例数据脚本
用于测试和演示

本脚本向数据库写入船舶机舱8个系统级设备的示例数据，并运行一次批量告警生成：
- 设备登记（电池、左/右推进、1#/2#逆变器、直流配电板、舱底水、冷却水泵）
- 分级阈值配置（同一监测点的 low/medium/high/critical 多档规则）
- 时序监测数据（基线 + 噪声 + 偶发越限片段）
- 告警记录（批量告警生成，按演示分布模拟操作员处理状态）

数据特点：
- 越限规则只设置被越过的一侧：过高类规则设置上限，过低类规则设置下限
- 开关量故障点正常为0、故障为1，对应规则上限为0
- 越限片段持续多个采样点，满足规则的持续时间要求
- 阈值配置ID由设备/监测点/故障名称/严重程度确定，重复运行保持不变

生产流程中告警状态一律为 pending，随机处理状态只出现在本脚本中。

Author: ShipWatch Team
License: MIT
"""
import argparse
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from functools import partial
from typing import Dict, List, Optional, Tuple

import numpy as np
from sqlalchemy import delete
from sqlalchemy.orm import Session

from . import models
from .alarm.batch import AlarmBatchDriver, BatchResult
from .alarm.data_service import SqlAlarmSink, frame_to_records, load_enabled_rules, load_readings_frame
from .config import settings
from .db import Base, SessionLocal, engine
from .models import CST, AlarmSeverity, AlarmStatus, DataQuality, DataSource, MetricType
from .schemas import AlarmDraft

log = logging.getLogger(__name__)

# 阈值配置ID的命名空间，保证重复运行时ID不变
THRESHOLD_NAMESPACE = uuid.UUID("6f1c9a52-3b8e-4d27-9a41-5e0c2b7d8f13")

RESOLVED_HANDLER = "admin-uuid-123"
PROCESSING_HANDLER = "operator-uuid-456"

# (设备ID, 名称, 设备类型, 安装位置)
EQUIPMENT = [
    ("SYS-BAT-001", "电池系统", "battery", "机舱电池间"),
    ("SYS-PROP-L-001", "左推进系统", "propulsion", "机舱左舷"),
    ("SYS-PROP-R-001", "右推进系统", "propulsion", "机舱右舷"),
    ("SYS-INV-1-001", "1#日用逆变器系统", "inverter", "配电间"),
    ("SYS-INV-2-001", "2#日用逆变器系统", "inverter", "配电间"),
    ("SYS-DCPD-001", "直流配电板系统", "dc-distribution", "配电间"),
    ("SYS-BILGE-001", "舱底水系统", "bilge", "机舱底部"),
    ("SYS-COOL-001", "冷却水泵系统", "cooling", "机舱"),
]


@dataclass
class Tier:
    """一档阈值规则"""
    fault_name: str
    severity: AlarmSeverity
    upper_limit: Optional[float] = None
    lower_limit: Optional[float] = None
    duration: int = 5000
    recommended_action: str = "显示报警"


@dataclass
class PointSpec:
    """
    监测点配置

    baseline/noise 为正常工况下的均值和标准差；excursion 为越限片段相对基线的偏移
    （正数向上越限，负数向下越限，随机选择一个方向时两者都给出）。
    """
    metric_type: MetricType
    monitoring_point: str
    baseline: float
    noise: float
    excursions: Tuple[float, ...] = ()
    tiers: List[Tier] = field(default_factory=list)

    @property
    def is_switch(self) -> bool:
        return self.metric_type == MetricType.SWITCH


def _switch(point: str, severity: AlarmSeverity, action: str, fault_name: Optional[str] = None) -> PointSpec:
    # 开关量：0 正常，1 故障
    return PointSpec(
        MetricType.SWITCH, point, 0.0, 0.0, (1.0,),
        [Tier(fault_name or point, severity, upper_limit=0, duration=1000, recommended_action=action)],
    )


def _battery_points() -> List[PointSpec]:
    low, medium, critical = AlarmSeverity.LOW, AlarmSeverity.MEDIUM, AlarmSeverity.CRITICAL
    return [
        PointSpec(MetricType.VOLTAGE, "总电压", 640.0, 8.0, (58.0, -70.0), [
            Tier("总压过压", low, upper_limit=683.1),
            Tier("总压过压", medium, upper_limit=693.0, recommended_action="显示报警；限功率"),
            Tier("总压过压", critical, upper_limit=702.9, recommended_action="显示；报警；切断输出"),
            Tier("总压欠压", low, lower_limit=584.1),
            Tier("总压欠压", medium, lower_limit=574.2, recommended_action="显示报警；限功率"),
            Tier("总压欠压", critical, lower_limit=564.3, recommended_action="显示；报警；切断输出"),
        ]),
        PointSpec(MetricType.VOLTAGE, "单体电压", 3.25, 0.04, (0.28, -0.38), [
            Tier("单体过压", low, upper_limit=3.45),
            Tier("单体过压", medium, upper_limit=3.5, recommended_action="显示报警；限功率"),
            Tier("单体过压", critical, upper_limit=3.55, recommended_action="显示；报警；切断输出"),
            Tier("单体欠压", low, lower_limit=2.95),
            Tier("单体欠压", medium, lower_limit=2.9, recommended_action="显示报警；限功率"),
            Tier("单体欠压", critical, lower_limit=2.85, recommended_action="显示；报警；切断输出"),
        ]),
        PointSpec(MetricType.TEMPERATURE, "电池温度", 32.0, 3.0, (26.0, -29.0), [
            Tier("充电高温", low, upper_limit=50),
            Tier("充电高温", medium, upper_limit=55, recommended_action="显示报警；限功率"),
            Tier("充电高温", critical, upper_limit=60, recommended_action="显示；报警；切断输出"),
            Tier("充电低温", low, lower_limit=6),
            Tier("充电低温", medium, lower_limit=4, recommended_action="显示报警；限功率"),
            Tier("充电低温", critical, lower_limit=2, recommended_action="显示；报警；停止充电"),
        ]),
        PointSpec(MetricType.CURRENT, "电池电流", 120.0, 10.0, (52.0,), [
            Tier("放电过流", low, upper_limit=160),
            Tier("放电过流", medium, upper_limit=165, recommended_action="显示报警；限功率"),
            Tier("放电过流", critical, upper_limit=175, recommended_action="显示；报警；切断输出"),
        ]),
        PointSpec(MetricType.POWER, "SOC荷电状态", 65.0, 5.0, (-52.0,), [
            Tier("SOC低", low, lower_limit=20, recommended_action="显示；报警"),
            Tier("SOC低", medium, lower_limit=10, recommended_action="显示；报警；降功率"),
        ]),
        PointSpec(MetricType.RESISTANCE, "绝缘电阻", 2200.0, 120.0, (-1150.0,), [
            Tier("绝缘故障", low, lower_limit=1500),
            Tier("绝缘故障", medium, lower_limit=1200),
            Tier("绝缘故障", critical, lower_limit=1000, recommended_action="显示；报警；切断输出"),
        ]),
        _switch("BMS通信故障", critical, "显示；报警；切断输出", "BMS与上级系统通信故障"),
    ]


def _propulsion_points() -> List[PointSpec]:
    medium, critical = AlarmSeverity.MEDIUM, AlarmSeverity.CRITICAL
    return [
        PointSpec(MetricType.VOLTAGE, "电机电压", 380.0, 6.0, (45.0,), [
            Tier("电压过高", medium, upper_limit=418, recommended_action="显示；警告"),
        ]),
        PointSpec(MetricType.SPEED, "电机转速", 1200.0, 60.0, (520.0,), [
            Tier("电机超速", critical, upper_limit=1650, duration=1000, recommended_action="显示；警告；自动停机"),
        ]),
        PointSpec(MetricType.FREQUENCY, "电机频率", 120.0, 5.0, (52.0,), [
            Tier("频率过高", medium, upper_limit=165, recommended_action="显示；警告"),
        ]),
        PointSpec(MetricType.VOLTAGE, "逆变器电压", 600.0, 15.0, (170.0, -215.0), [
            Tier("逆变器电压过高", medium, upper_limit=750, recommended_action="显示；警告"),
            Tier("逆变器电压过低", medium, lower_limit=400, recommended_action="显示；警告"),
        ]),
        PointSpec(MetricType.TEMPERATURE, "前轴承温度", 65.0, 4.0, (30.0,), [
            Tier("轴承温度过高", critical, upper_limit=90, recommended_action="显示；警告；自动停机"),
        ]),
        PointSpec(MetricType.TEMPERATURE, "定子绕组温度", 95.0, 5.0, (32.0,), [
            Tier("定子绕组温度过高", medium, upper_limit=120, recommended_action="显示；警告"),
        ]),
        _switch("逆变器故障", medium, "显示；警告"),
    ]


def _inverter_points() -> List[PointSpec]:
    critical = AlarmSeverity.CRITICAL
    return [
        PointSpec(MetricType.VOLTAGE, "输入直流电压", 620.0, 15.0, (145.0, -235.0), [
            Tier("直流电压高", critical, upper_limit=750),
            Tier("直流电压低", critical, lower_limit=400, recommended_action="显示报警；自动停机"),
        ]),
        PointSpec(MetricType.CURRENT, "输出交流电流", 140.0, 12.0, (60.0,), [
            Tier("逆变器过电流", critical, upper_limit=190),
        ]),
        PointSpec(MetricType.TEMPERATURE, "电抗器温度", 75.0, 5.0, (36.0,), [
            Tier("电抗器温度高", critical, upper_limit=105),
        ]),
    ]


def _dc_distribution_points() -> List[PointSpec]:
    medium = AlarmSeverity.MEDIUM
    return [
        PointSpec(MetricType.RESISTANCE, "绝缘电阻", 2400.0, 150.0, (-1000.0,), [
            Tier("直流母排绝缘电阻低", medium, lower_limit=1500, recommended_action="驾控台显示警告"),
        ]),
        PointSpec(MetricType.VOLTAGE, "直流母排电压", 640.0, 8.0, (52.0, -65.0), [
            Tier("直流母排电压高", medium, upper_limit=683.1, recommended_action="驾控台显示警告"),
            Tier("直流母排电压低", medium, lower_limit=584.1, recommended_action="驾控台显示警告"),
        ]),
        _switch("熔断器跳闸", medium, "驾控台警告", "熔断器分断跳闸"),
    ]


def _bilge_points() -> List[PointSpec]:
    return [
        PointSpec(MetricType.LEVEL, f"{i}#集水井水位", 80.0, 15.0, (160.0,), [
            Tier(f"{i}#集水井水位高", AlarmSeverity.HIGH, upper_limit=200, recommended_action="驾控台显示提醒"),
        ])
        for i in range(1, 5)
    ]


def _cooling_points() -> List[PointSpec]:
    high = AlarmSeverity.HIGH
    points: List[PointSpec] = []
    for i in (1, 2):
        points.append(_switch(f"{i}#冷却水泵失电", AlarmSeverity.MEDIUM, "驾控台显示提醒"))
        points.append(PointSpec(MetricType.TEMPERATURE, f"{i}#冷却水温", 26.0, 1.5, (10.0,), [
            Tier(f"{i}#冷却水温高", high, upper_limit=33, recommended_action="驾控台显示提醒"),
        ]))
    points.append(PointSpec(MetricType.PRESSURE, "冷却水压力", 0.25, 0.02, (-0.17,), [
        Tier("冷却水压力低", high, lower_limit=0.1, recommended_action="驾控台显示提醒"),
    ]))
    return points


POINTS: Dict[str, List[PointSpec]] = {
    "SYS-BAT-001": _battery_points(),
    "SYS-PROP-L-001": _propulsion_points(),
    "SYS-PROP-R-001": _propulsion_points(),
    "SYS-INV-1-001": _inverter_points(),
    "SYS-INV-2-001": _inverter_points(),
    "SYS-DCPD-001": _dc_distribution_points(),
    "SYS-BILGE-001": _bilge_points(),
    "SYS-COOL-001": _cooling_points(),
}


def threshold_id(equipment_id: str, point: PointSpec, tier: Tier) -> str:
    """阈值配置ID（同一配置重复生成得到相同ID）"""
    key = f"{equipment_id}|{point.monitoring_point}|{tier.fault_name}|{tier.severity.value}"
    return str(uuid.uuid5(THRESHOLD_NAMESPACE, key))


def build_equipment() -> List[models.Equipment]:
    return [
        models.Equipment(id=eid, name=name, device_type=device_type, location=location, status="running")
        for eid, name, device_type, location in EQUIPMENT
    ]


def build_threshold_configs() -> List[models.ThresholdConfig]:
    configs = []
    for equipment_id, points in POINTS.items():
        for point in points:
            for tier in point.tiers:
                configs.append(models.ThresholdConfig(
                    id=threshold_id(equipment_id, point, tier),
                    equipment_id=equipment_id,
                    metric_type=point.metric_type,
                    monitoring_point=point.monitoring_point,
                    fault_name=tier.fault_name,
                    upper_limit=tier.upper_limit,
                    lower_limit=tier.lower_limit,
                    duration=tier.duration,
                    severity=tier.severity,
                    recommended_action=tier.recommended_action,
                    creator="system",
                ))
    return configs


def _point_series(rng: np.random.Generator, point: PointSpec, samples: int, excursion_rate: float) -> np.ndarray:
    """
    生成单个监测点的数值序列

    正常工况为基线加高斯噪声；每个采样点以 excursion_rate 的概率开始一段
    3-6个采样点的越限片段（片段内数值偏移 excursion，并带少量抖动）。
    """
    if point.is_switch:
        values = np.zeros(samples)
    else:
        values = point.baseline + rng.normal(0.0, point.noise, samples)

    if not point.excursions:
        return values

    starts = np.flatnonzero(rng.random(samples) < excursion_rate)
    for start in starts:
        length = int(rng.integers(3, 7))
        shift = point.excursions[int(rng.integers(0, len(point.excursions)))]
        end = min(samples, start + length)
        if point.is_switch:
            values[start:end] = shift
        else:
            jitter = rng.normal(0.0, abs(shift) * 0.05, end - start)
            values[start:end] = point.baseline + shift + jitter
    return values


def generate_readings(
    rng: np.random.Generator,
    start: datetime,
    hours: float = 6.0,
    interval_seconds: int = 10,
    excursion_rate: float = 0.004,
) -> List[dict]:
    """
    生成所有设备所有监测点的时序数据

    Args:
        rng: numpy 随机数生成器
        start: 第一个采样时间
        hours: 时间跨度（小时）
        interval_seconds: 采样间隔（秒）
        excursion_rate: 每个采样点开始一段越限片段的概率

    Returns:
        监测数据字典列表（字段与 time_series_data 表一致）
    """
    samples = max(1, int(hours * 3600 // interval_seconds))
    offsets = np.arange(samples) * interval_seconds
    timestamps = [start + timedelta(seconds=int(s)) for s in offsets]

    records = []
    for equipment_id, points in POINTS.items():
        for point in points:
            values = np.round(_point_series(rng, point, samples, excursion_rate), 2)
            unit = point.metric_type.standard_unit
            for ts, value in zip(timestamps, values):
                records.append({
                    "equipment_id": equipment_id,
                    "timestamp": ts,
                    "metric_type": point.metric_type,
                    "monitoring_point": point.monitoring_point,
                    "value": float(value),
                    "unit": unit,
                    "quality": DataQuality.NORMAL,
                    "source": DataSource.SENSOR_UPLOAD,
                })
    return records


def assign_demo_handling(draft: AlarmDraft, rng) -> AlarmDraft:
    """
    模拟操作员处理状态（仅用于演示数据）

    - 15%：已解决，处理人 admin，触发后1小时处理
    - 15%：处理中，处理人 operator，触发后30分钟处理
    - 其余：待处理

    Args:
        draft: 告警生成器产出的告警
        rng: 提供 random() 方法的随机数生成器（numpy Generator 或 random.Random）
    """
    draw = rng.random()
    if draw < 0.15:
        return draft.model_copy(update={
            "status": AlarmStatus.RESOLVED,
            "handler": RESOLVED_HANDLER,
            "handled_at": draft.triggered_at + timedelta(hours=1),
            "handle_note": "已检查设备，问题已解决",
        })
    if draw < 0.30:
        return draft.model_copy(update={
            "status": AlarmStatus.PROCESSING,
            "handler": PROCESSING_HANDLER,
            "handled_at": draft.triggered_at + timedelta(minutes=30),
            "handle_note": "正在检查设备状态",
        })
    return draft


def seed_database(session: Session, readings: List[dict]) -> None:
    """清空并写入设备、阈值配置和时序数据（告警记录由批量告警生成写入）"""
    for table in (models.AlarmRecord, models.TimeSeriesData, models.ThresholdConfig, models.Equipment):
        session.execute(delete(table))
    session.commit()

    session.add_all(build_equipment())
    session.flush()
    session.add_all(build_threshold_configs())
    session.bulk_insert_mappings(models.TimeSeriesData, readings)
    session.commit()


def run(
    hours: float = 6.0,
    interval_seconds: int = 10,
    excursion_rate: float = 0.004,
    seed: Optional[int] = None,
    start: Optional[datetime] = None,
    session_factory=SessionLocal,
) -> BatchResult:
    """写入示例数据并运行批量告警生成"""
    rng = np.random.default_rng(settings.SAMPLE_SEED if seed is None else seed)
    if start is None:
        start = (datetime.now(CST) - timedelta(hours=hours)).replace(second=0, microsecond=0)

    readings = generate_readings(rng, start, hours, interval_seconds, excursion_rate)
    with session_factory() as session:
        seed_database(session, readings)
        log.info(
            "示例数据已写入: 设备=%d, 阈值配置=%d, 监测数据=%d",
            len(EQUIPMENT), sum(len(p.tiers) for pts in POINTS.values() for p in pts), len(readings),
        )
        raw = frame_to_records(load_readings_frame(session))
        rules = load_enabled_rules(session)

    driver = AlarmBatchDriver(decorate=partial(assign_demo_handling, rng=rng))
    return driver.run(raw, rules, SqlAlarmSink(session_factory))


def main(argv=None):
    """主函数"""
    parser = argparse.ArgumentParser(description="生成船舶机舱示例数据并运行批量告警生成")
    parser.add_argument("--hours", type=float, default=6.0, help="时序数据时间跨度（小时），默认6")
    parser.add_argument("--interval", type=int, default=10, help="采样间隔（秒），默认10")
    parser.add_argument("--excursion-rate", type=float, default=0.004, help="越限片段出现概率，默认0.004")
    parser.add_argument("--seed", type=int, default=None, help="随机种子，默认使用 SAMPLE_SEED 配置")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    Base.metadata.create_all(bind=engine)

    result = run(args.hours, args.interval, args.excursion_rate, args.seed)
    print("=" * 60)
    print("示例数据生成完成！")
    print("=" * 60)
    print(f"  监测数据: {result.evaluated} 条（跳过 {result.skipped} 条）")
    print(f"  告警记录: {result.written} 条（写入失败 {result.failed} 条）")
    print(f"  触发率: {result.trigger_rate * 100:.2f}%")


if __name__ == "__main__":
    main()
