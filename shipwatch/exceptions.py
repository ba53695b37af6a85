"""ShipWatch 领域异常"""


class ShipWatchError(Exception):
    """所有领域异常的基类"""


class EquipmentNotFoundError(ShipWatchError, LookupError):
    """设备不存在"""


class ThresholdNotFoundError(ShipWatchError, LookupError):
    """阈值配置不存在（或已软删除）"""


class AlarmNotFoundError(ShipWatchError, LookupError):
    """告警记录不存在"""


class AlarmConflictError(ShipWatchError):
    """告警已被其他操作员修改（乐观锁版本不一致）"""


class AlarmPersistenceError(ShipWatchError):
    """告警写入失败（非瞬时错误或重试用尽）"""


class ThresholdValidationError(ShipWatchError, ValueError):
    """阈值配置不合法（上下限缺失或下限大于上限）"""
