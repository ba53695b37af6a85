"""
批量告警生成脚本

读取数据库中的时序监测数据和启用的阈值配置，全量重算告警记录：
清空 alarm_records 后写入本次生成的告警。对同一份数据重复运行得到相同的告警集合。
指定 --equipment / --start / --end 时只替换该范围内的告警。

用法：
    python generate_alarms.py
    python generate_alarms.py --equipment SYS-BAT-001 --policy most_severe
    python generate_alarms.py --no-duration

Author: ShipWatch Team
License: MIT
"""
import argparse
import logging
import sys
from datetime import datetime

from shipwatch.alarm.base import POLICIES, get_policy
from shipwatch.alarm.batch import AlarmBatchDriver
from shipwatch.alarm.data_service import SqlAlarmSink, frame_to_records, load_enabled_rules, load_readings_frame
from shipwatch.config import settings
from shipwatch.db import Base, SessionLocal, engine

log = logging.getLogger("generate_alarms")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="根据时序监测数据和阈值配置批量生成告警记录")
    parser.add_argument("--equipment", default=None, help="只重算指定设备的告警（其他设备的告警保持不变）")
    parser.add_argument("--start", type=datetime.fromisoformat, default=None, help="开始时间（ISO格式），只重算该时间之后触发的告警")
    parser.add_argument("--end", type=datetime.fromisoformat, default=None, help="结束时间（ISO格式），只重算该时间之前触发的告警")
    parser.add_argument("--policy", choices=sorted(POLICIES), default=settings.ALARM_BREACH_POLICY,
                        help="多档阈值同时越限时的告警策略")
    parser.add_argument("--no-duration", action="store_true", help="关闭持续时间判定，每条越限数据都生成告警")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    Base.metadata.create_all(bind=engine)

    with SessionLocal() as session:
        frame = load_readings_frame(session, args.equipment, args.start, args.end)
        rules = load_enabled_rules(session, args.equipment)
    log.info("已加载监测数据 %d 条, 启用的阈值配置 %d 条", len(frame), len(rules))

    if frame.empty:
        log.warning("没有可评估的监测数据")
    if not rules:
        log.warning("没有启用的阈值配置，不会生成任何告警")

    driver = AlarmBatchDriver(
        policy=get_policy(args.policy),
        enforce_duration=False if args.no_duration else None,
    )
    result = driver.run(
        frame_to_records(frame), rules, SqlAlarmSink(SessionLocal, args.equipment, args.start, args.end)
    )

    print(f"已评估: {result.evaluated} 条, 跳过: {result.skipped} 条")
    print(f"生成告警: {result.triggered} 条, 写入: {result.written} 条, 写入失败: {result.failed} 条")
    return 1 if result.failed else 0


if __name__ == "__main__":
    sys.exit(main())
