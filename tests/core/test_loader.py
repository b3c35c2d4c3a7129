# tests/core/test_loader.py
"""Tests for populating schemas from a source mapping."""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from ipaddress import IPv4Address
from urllib.parse import SplitResult

import pytest

from envcast.errors import FieldError, ParseError, RequiredKeyMissingError, SchemaError, UnsupportedTypeError
from envcast.fields import setting
from envcast.loader import load
from envcast.registry import ParserRegistry
from envcast.scalars import Int8
from envcast.types import LogLevel, Quantity
from tests.fixtures.schemas import AppConfig, CacheConfig, DatabaseConfig


@dataclass
class Service:
    name: str = setting(env="SERVICE_NAME", default="default-value", value="")
    replicas: int = setting(env="REPLICAS", value=0)
    hosts: list[str] = setting(env="HOSTS")
    ports: list[int] = setting(env="PORTS", default="80,443")


@dataclass
class RichTypes:
    timeout: timedelta = setting(env="TIMEOUT", default="30s")
    started: datetime | None = setting(env="STARTED")
    level: LogLevel = setting(env="LEVEL", default="info")
    price: Decimal = setting(env="PRICE")
    memory: Quantity | None = setting(env="MEMORY")
    bind: IPv4Address | None = setting(env="BIND")
    upstreams: list[SplitResult] = setting(env="UPSTREAMS")


@dataclass
class Required:
    token: str = setting(env="TOKEN", required=True)


@dataclass
class RequiredWithDefault:
    token: str = setting(env="TOKEN", default="fallback", required=True)


@dataclass
class RequiredList:
    hosts: list[str] = setting(env="HOSTS", required=True)


@dataclass
class UpperRequired:
    token: str = setting(env="TOKEN", required="TRUE")


@dataclass
class Untagged:
    hostname: str = ""
    retries: Int8 = 0


@dataclass
class Ordered:
    first: str = setting(env="FIRST")
    second: int = setting(env="SECOND")
    third: str = setting(env="THIRD")


@dataclass(frozen=True)
class Frozen:
    name: str = setting(env="NAME")


@dataclass
class NeedsArgs:
    name: str


@dataclass
class HoldsNeedsArgs:
    inner: NeedsArgs | None = None


@dataclass
class Unsupported:
    data: bytes = setting(env="DATA")


class Region:
    @classmethod
    def from_text(cls, text: str) -> "Region":
        return {"eu": cls()}[text]


@dataclass
class Placement:
    region: Region | None = setting(env="REGION")


class TestPrecedence:
    """Tests for source value > existing value > default tag."""

    def test_source_value_wins(self) -> None:
        config = Service(name="existing-value")
        load(config, environ={"SERVICE_NAME": "from_env"})
        assert config.name == "from_env"

    def test_default_does_not_clobber_existing_value(self) -> None:
        config = Service(name="existing-value")
        load(config, environ={})
        assert config.name == "existing-value"

    def test_default_used_for_zero_value(self) -> None:
        config = load(Service, environ={})
        assert config.name == "default-value"

    def test_zero_value_without_default_left_alone(self) -> None:
        config = load(Service, environ={})
        assert config.replicas == 0

    def test_explicit_empty_value_keeps_current(self) -> None:
        """An empty string in the source is a no-op for non-list fields."""
        config = Service(name="existing-value")
        load(config, environ={"SERVICE_NAME": ""})
        assert config.name == "existing-value"

    def test_explicit_empty_value_beats_default(self) -> None:
        config = load(Service, environ={"SERVICE_NAME": ""})
        assert config.name == ""

    def test_non_zero_number_not_clobbered(self) -> None:
        config = Service(replicas=3)
        load(config, environ={})
        assert config.replicas == 3


class TestKeyResolution:
    """Tests for env tag, secret tag and attribute name keys."""

    def test_untagged_fields_use_attribute_name(self) -> None:
        config = load(Untagged, environ={"hostname": "db1", "retries": "5"})
        assert config.hostname == "db1"
        assert config.retries == 5

    def test_secret_tag_is_a_source_key(self) -> None:
        config = load(AppConfig, environ={"API_KEY": "sk-123"})
        assert config.api_key == "sk-123"

    def test_lookup_is_case_sensitive(self) -> None:
        config = load(Untagged, environ={"HOSTNAME": "db1"})
        assert config.hostname == ""


class TestRequired:
    """Tests for required fields."""

    def test_missing_required_key(self) -> None:
        with pytest.raises(RequiredKeyMissingError) as exc_info:
            load(Required, environ={})
        assert str(exc_info.value) == 'required key "TOKEN" missing'
        assert exc_info.value.key == "TOKEN"

    def test_empty_required_value(self) -> None:
        with pytest.raises(RequiredKeyMissingError):
            load(Required, environ={"TOKEN": ""})

    def test_required_satisfied_by_default(self) -> None:
        assert load(RequiredWithDefault, environ={}).token == "fallback"

    def test_required_satisfied_by_existing_value(self) -> None:
        """An existing non-zero value is kept without consulting the tag."""
        assert load(Required(token="preset"), environ={}).token == "preset"

    def test_required_list_empty_value_fails(self) -> None:
        with pytest.raises(RequiredKeyMissingError, match='"HOSTS"'):
            load(RequiredList, environ={"HOSTS": ""})

    def test_required_tag_case_insensitive(self) -> None:
        with pytest.raises(RequiredKeyMissingError):
            load(UpperRequired, environ={})

    def test_nested_required_key(self) -> None:
        with pytest.raises(RequiredKeyMissingError, match='required key "API_KEY" missing'):
            load(AppConfig, environ={})


class TestSequences:
    """Tests for comma-separated list fields."""

    def test_split_and_trim(self) -> None:
        config = load(Service, environ={"HOSTS": " a , b ,c "})
        assert config.hosts == ["a", "b", "c"]

    def test_empty_parts_collapse(self) -> None:
        config = load(Service, environ={"HOSTS": "a,,b"})
        assert config.hosts == ["a", "b"]

    def test_whitespace_only_parts_dropped(self) -> None:
        config = load(Service, environ={"HOSTS": "a, ,b,"})
        assert config.hosts == ["a", "b"]

    def test_explicit_empty_string_yields_empty_list(self) -> None:
        config = Service(hosts=["keep"])
        load(config, environ={"HOSTS": ""})
        assert config.hosts == []

    def test_absent_key_keeps_existing_list(self) -> None:
        config = Service(hosts=["keep"])
        load(config, environ={})
        assert config.hosts == ["keep"]

    def test_element_type_parsed(self) -> None:
        config = load(Service, environ={})
        assert config.ports == [80, 443]

    def test_element_parse_error(self) -> None:
        with pytest.raises(FieldError, match="field ports: ") as exc_info:
            load(Service, environ={"PORTS": "80,http"})
        assert isinstance(exc_info.value.__cause__, ParseError)

    def test_rich_element_type(self) -> None:
        config = load(RichTypes, environ={"UPSTREAMS": "http://a:8080, http://user:pw@b"})
        assert [u.hostname for u in config.upstreams] == ["a", "b"]


class TestNesting:
    """Tests for nested dataclasses."""

    def test_nested_by_value(self) -> None:
        config = load(AppConfig, environ={"API_KEY": "k", "DB_HOST": "db.internal", "DB_PORT": "6543"})
        assert config.db == DatabaseConfig(host="db.internal", port=6543, password="")

    def test_optional_nested_allocated_without_values(self) -> None:
        config = load(AppConfig, environ={"API_KEY": "k"})
        assert config.cache == CacheConfig(ttl=60, enabled=False)

    def test_optional_nested_existing_instance_reused(self) -> None:
        cache = CacheConfig(ttl=5)
        config = AppConfig(cache=cache)
        load(config, environ={"API_KEY": "k", "CACHE_ENABLED": "true"})
        assert config.cache is cache
        assert cache.ttl == 5
        assert cache.enabled is True

    def test_optional_nested_without_zero_arg_constructor(self) -> None:
        with pytest.raises(SchemaError, match="cannot instantiate NeedsArgs"):
            load(HoldsNeedsArgs, environ={})


class TestRichTypes:
    """Tests for fields parsed through the built-in catalog."""

    def test_catalog_types(self) -> None:
        config = load(
            RichTypes,
            environ={
                "TIMEOUT": "1m30s",
                "STARTED": "2024-01-15T10:30:00Z",
                "LEVEL": "WARN",
                "PRICE": "19.99",
                "MEMORY": "512Mi",
                "BIND": "0.0.0.0",
            },
        )
        assert config.timeout == timedelta(seconds=90)
        assert config.started == datetime(2024, 1, 15, 10, 30, tzinfo=UTC)
        assert config.level == LogLevel.WARNING
        assert config.price == Decimal("19.99")
        assert config.memory == Quantity.from_text("512Mi")
        assert config.bind == IPv4Address("0.0.0.0")

    def test_catalog_defaults(self) -> None:
        config = load(RichTypes, environ={})
        assert config.timeout == timedelta(seconds=30)
        assert config.level == LogLevel.INFO
        assert config.started is None

    def test_custom_parser_on_isolated_registry(self, registry: ParserRegistry) -> None:
        registry.register(bytes, lambda raw: raw.encode("utf-8"))
        config = load(Unsupported, environ={"DATA": "abc"}, registry=registry)
        assert config.data == b"abc"


class TestErrors:
    """Tests for fail-fast error reporting."""

    def test_parse_error_names_field(self) -> None:
        with pytest.raises(FieldError) as exc_info:
            load(Service, environ={"REPLICAS": "many"})
        assert str(exc_info.value) == 'field replicas: invalid integer "many"'
        assert exc_info.value.field_name == "replicas"
        assert isinstance(exc_info.value.cause, ParseError)

    def test_unsupported_type(self) -> None:
        with pytest.raises(FieldError, match="field data: unsupported scalar kind bytes") as exc_info:
            load(Unsupported, environ={"DATA": "abc"})
        assert isinstance(exc_info.value.__cause__, UnsupportedTypeError)

    def test_decoder_failure_names_field(self) -> None:
        with pytest.raises(FieldError, match="field region: failed to decode text") as exc_info:
            load(Placement, environ={"REGION": "us"})
        assert isinstance(exc_info.value.__cause__, ParseError)
        assert isinstance(exc_info.value.__cause__.__cause__, KeyError)

    def test_absent_unsupported_field_is_not_an_error(self) -> None:
        """Dispatch only happens for non-empty values."""
        assert load(Unsupported, environ={}).data is None

    def test_not_transactional(self) -> None:
        """Fields visited before the failure keep their new values."""
        config = Ordered()
        with pytest.raises(FieldError):
            load(config, environ={"FIRST": "set", "SECOND": "x", "THIRD": "unreached"})
        assert config.first == "set"
        assert config.third is None

    def test_frozen_dataclass_rejected(self) -> None:
        with pytest.raises(SchemaError, match="frozen"):
            load(Frozen, environ={"NAME": "x"})

    @pytest.mark.parametrize("schema", [42, "config", {"PORT": "1"}, int])
    def test_non_dataclass_rejected(self, schema: object) -> None:
        with pytest.raises(SchemaError, match="must be a dataclass"):
            load(schema, environ={})


class TestEnvironmentSource:
    """Tests for the default os.environ source."""

    def test_reads_process_environment(self, clean_environ: pytest.MonkeyPatch) -> None:
        clean_environ.setenv("API_KEY", "from-process")
        clean_environ.setenv("PORT", "9090")
        config = load(AppConfig)
        assert config.api_key == "from-process"
        assert config.port == 9090

    def test_returns_same_instance(self) -> None:
        config = AppConfig(api_key="k")
        assert load(config, environ={}) is config


def test_fixture_schema_defaults() -> None:
    """AppConfig loads with only the required key set."""
    config = load(AppConfig, environ={"API_KEY": "k"})
    assert config.name == "demo"
    assert config.port == 8080
    assert config.debug is False
    assert config.tags == ["web", "api"]
    assert config.database_url is None
    assert config.db.host == "localhost"


@dataclass
class WithFactoryDefault:
    labels: list[str] = field(default_factory=lambda: ["preset"])


def test_untagged_list_with_factory_default() -> None:
    assert load(WithFactoryDefault, environ={}).labels == ["preset"]
    assert load(WithFactoryDefault, environ={"labels": "x,y"}).labels == ["x", "y"]
