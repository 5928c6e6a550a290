import pydantic
from packaging.version import parse
from pydantic.version import VERSION

version_parsed = parse(str(VERSION))

PydanticVersion = version_parsed.major
# 2.11 split ``populate_by_name`` into ``validate_by_name``/``validate_by_alias``
PYDANTIC_V2_11_PLUS = (version_parsed.major, version_parsed.minor) >= (2, 11)

if PydanticVersion < 2:
    raise ImportError(f"slate_feed requires pydantic>=2, found {VERSION}")


BaseModel: type = pydantic.BaseModel
Field: type = pydantic.Field
ConfigDict: type = pydantic.ConfigDict


def get_model_config(**overrides) -> dict:
    """
    Return the ``model_config`` entries shared by every document model:
    population by python name *and* by stored (camelCase) alias.
    """
    if PYDANTIC_V2_11_PLUS:
        config = {"validate_by_name": True, "validate_by_alias": True}
    else:
        config = {"populate_by_name": True}
    config.update(overrides)
    return config


def get_model_fields(cls: type) -> dict:
    return getattr(cls, "model_fields", {})


def model_dump_compat(instance, **kwargs) -> dict:
    return instance.model_dump(**kwargs)


def model_validate_compat(cls: type, data: dict):
    return cls.model_validate(data)


__all__ = [
    "BaseModel",
    "Field",
    "ConfigDict",
    "get_model_config",
    "get_model_fields",
    "model_dump_compat",
    "model_validate_compat",
    "PydanticVersion",
    "PYDANTIC_V2_11_PLUS",
]
