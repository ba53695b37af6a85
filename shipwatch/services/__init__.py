"""业务服务层：告警查询与处理、阈值配置管理"""
