"""
envcast: typed configuration from environment variables.

Declare configuration as a dataclass, tag each field with the variable it
reads, and let ``load()`` parse and assign the values:

    from dataclasses import dataclass
    from envcast import load, pretty_string, setting

    @dataclass
    class AppConfig:
        port: int = setting(env="PORT", default="8080")
        api_key: str = setting(secret="API_KEY", required=True)

    config = load(AppConfig)
    print(pretty_string(config))  # api_key is masked
"""

from envcast.errors import (
    ConfigError,
    FieldError,
    ParseError,
    RequiredKeyMissingError,
    SchemaError,
    UnsupportedTypeError,
)
from envcast.expression import Program, compile_expression
from envcast.fields import setting
from envcast.loader import load, load_with_dotenv
from envcast.overlay import apply_overlay
from envcast.registry import (
    ParserRegistry,
    TextDecodable,
    default_registry,
    register_parser,
    register_parser_factory,
)
from envcast.render import mask, pretty_string, safe_tree
from envcast.scalars import BitWidth, Float32, Float64, Int8, Int16, Int32, Int64
from envcast.settings import FieldSetting, describe_fields, filter_settings, required_fields, secret_fields
from envcast.types import BigInt, IPAddress, LogLevel, Quantity

__version__ = "0.1.0"

__all__ = [
    "BigInt",
    "BitWidth",
    "ConfigError",
    "FieldError",
    "FieldSetting",
    "Float32",
    "Float64",
    "IPAddress",
    "Int8",
    "Int16",
    "Int32",
    "Int64",
    "LogLevel",
    "ParseError",
    "ParserRegistry",
    "Program",
    "Quantity",
    "RequiredKeyMissingError",
    "SchemaError",
    "TextDecodable",
    "UnsupportedTypeError",
    "apply_overlay",
    "compile_expression",
    "default_registry",
    "describe_fields",
    "filter_settings",
    "load",
    "load_with_dotenv",
    "mask",
    "pretty_string",
    "register_parser",
    "register_parser_factory",
    "required_fields",
    "safe_tree",
    "secret_fields",
    "setting",
]
