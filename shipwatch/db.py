"""
ShipWatch 数据库配置模块

本模块负责数据库连接和会话管理，支持SQLite和PostgreSQL/MySQL数据库。
使用SQLAlchemy ORM进行数据库操作，提供统一的数据库接口。

配置说明：
- 默认使用SQLite数据库（shipwatch.db）
- 可通过环境变量DB_URL或DATABASE_URL配置数据库连接（见 config.py）

Author: ShipWatch Team
License: MIT
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import settings


def make_engine(db_url: str):
    """
    根据连接URL创建数据库引擎

    SQLite需要设置check_same_thread=False，流式评估会在工作线程中写入告警。
    """
    return create_engine(
        db_url,
        connect_args={"check_same_thread": False} if db_url.startswith("sqlite") else {},
    )


engine = make_engine(settings.DB_URL)

# autocommit=False: 需要手动提交事务
# autoflush=False: 需要手动刷新会话
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# 声明式基类，所有ORM模型都继承自此类
Base = declarative_base()


def get_db():
    """
    数据库会话依赖注入函数

    为每个请求提供独立的数据库会话，请求结束后自动关闭。

    Yields:
        Session: SQLAlchemy数据库会话对象
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
