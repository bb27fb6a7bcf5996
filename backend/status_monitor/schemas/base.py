from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """
    基础 Schema
    配置:
    - from_attributes=True: 允许从 ORM 对象读取
    - populate_by_name=True: 代码内使用字段名构造，序列化时输出 camelCase 别名
    """
    model_config = ConfigDict(from_attributes=True, strict=False, populate_by_name=True, extra="ignore")


class FrozenSchema(BaseSchema):
    """不可变 Schema，创建后禁止修改，只能 model_copy 派生"""
    model_config = ConfigDict(
        from_attributes=True, strict=False, populate_by_name=True, extra="ignore", frozen=True
    )
