"""Configuration loading and normalization.

The three tables (DNS records, routes, firewall rules) are read once at
startup, normalized into the frozen engine types and never touched again.
Anything that does not validate is reported as a `ConfigError` before the
service accepts traffic.

Accepted DNS table shapes:

  - [ {name, type, address}, ... ]
  - { "records": [ ... ] }
  - { "hosts": { "example.com": "1.2.3.4", ... } }
  - { "example.com": "1.2.3.4", ... }   (string-valued keys only)

Record fields accept synonyms: name/hostname/host, address/ip/value for A
records, alias/target/cname for CNAME records.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Literal, Optional, Tuple, Union
import json
import logging
import os

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    StrictInt,
    StrictStr,
    ValidationError,
    field_validator,
    model_validator,
)

from .cidr import is_ipv4_address, validate_cidr
from .firewall import FirewallRule, PROTOCOL_ANY
from .resolver import NameRecord, RECORD_ADDRESS, RECORD_ALIAS
from .routing import Route

log = logging.getLogger(__name__)


DNS_CONFIG_FILE = "dnsConfig.json"
ROUTES_CONFIG_FILE = "routesConfig.json"
FIREWALL_CONFIG_FILE = "firewallConfig.json"


class ConfigError(ValueError):
    def __init__(self, message: str, problems: Optional[List[str]] = None):
        self.problems: List[str] = list(problems or [])
        if self.problems:
            message = message + "\n" + "\n".join(f"  - {p}" for p in self.problems)
        super().__init__(message)


# ───────────────────────────── Record schemas ─────────────────────────────


class DNSRecordModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: StrictStr = Field(..., min_length=1, validation_alias=AliasChoices("name", "hostname", "host"))
    type: Optional[StrictStr] = None
    address: Optional[StrictStr] = Field(default=None, validation_alias=AliasChoices("address", "ip", "value"))
    alias: Optional[StrictStr] = Field(default=None, validation_alias=AliasChoices("alias", "target", "cname"))

    @model_validator(mode="after")
    def _check_shape(self) -> "DNSRecordModel":
        rtype = (self.type or "").upper()
        if rtype == RECORD_ADDRESS or self.address:
            if not self.address:
                raise ValueError(f"Malformed A record for {self.name}")
            if not is_ipv4_address(self.address):
                raise ValueError(f"A record for {self.name} has invalid address {self.address!r}")
        elif rtype == RECORD_ALIAS or self.alias:
            if not self.alias:
                raise ValueError(f"Malformed CNAME record for {self.name}")
        else:
            raise ValueError(f"Unsupported DNS record format for {self.name}")
        return self

    def to_record(self) -> NameRecord:
        rtype = (self.type or "").upper()
        if rtype == RECORD_ADDRESS or self.address:
            return NameRecord(name=self.name, kind=RECORD_ADDRESS, value=self.address.strip())
        return NameRecord(name=self.name, kind=RECORD_ALIAS, value=self.alias.strip())


class RouteModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    cidr: StrictStr = Field(..., validation_alias=AliasChoices("cidr", "networkCidr"))
    next_hop: StrictStr = Field(..., validation_alias=AliasChoices("nextHop", "nextHopAddress"))
    interface: StrictStr = Field(..., validation_alias=AliasChoices("interface", "outInterface"))
    router_name: Optional[StrictStr] = Field(default=None, validation_alias=AliasChoices("routerName", "routerLabel"))

    @field_validator("cidr")
    @classmethod
    def _valid_cidr(cls, v: str) -> str:
        return validate_cidr(v)

    def to_route(self) -> Route:
        return Route(
            cidr=self.cidr,
            next_hop=self.next_hop,
            interface=self.interface,
            router_name=self.router_name or None,
        )


class FirewallRuleModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Union[StrictInt, StrictStr]
    action: Literal["allow", "deny"]
    protocol: Optional[StrictStr] = None
    source: StrictStr = Field(..., validation_alias=AliasChoices("source", "sourceCidr"))
    port_range: Tuple[StrictInt, StrictInt] = Field(
        ..., validation_alias=AliasChoices("destPortRange", "portRange", "destinationPortRange")
    )

    @field_validator("action", mode="before")
    @classmethod
    def _lower_action(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("protocol")
    @classmethod
    def _upper_protocol(cls, v: Optional[str]) -> str:
        v = (v or "").strip().upper()
        return v or PROTOCOL_ANY

    @field_validator("source")
    @classmethod
    def _valid_source(cls, v: str) -> str:
        return validate_cidr(v)

    @field_validator("port_range")
    @classmethod
    def _ordered_ports(cls, v: Tuple[int, int]) -> Tuple[int, int]:
        lo, hi = v
        if not (0 <= lo <= hi <= 65535):
            raise ValueError(f"port range must satisfy 0 <= min <= max <= 65535, got [{lo}, {hi}]")
        return v

    def to_rule(self) -> FirewallRule:
        return FirewallRule(
            id=str(self.id),
            action=self.action,
            protocol=self.protocol or PROTOCOL_ANY,
            source=self.source,
            port_range=self.port_range,
        )


class TraceRequest(BaseModel):
    """Packet descriptor submitted by a caller.

    Canonical camelCase names are accepted along with the short names the
    first version of the API used (sourceIp, destPort, ttl).
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    source_address: StrictStr = Field(..., validation_alias=AliasChoices("sourceAddress", "sourceIp", "source_address"))
    destination: StrictStr = Field(..., min_length=1)
    destination_port: StrictInt = Field(
        ..., ge=0, le=65535, validation_alias=AliasChoices("destinationPort", "destPort", "destination_port")
    )
    protocol: StrictStr = Field(..., min_length=1)
    ttl: StrictInt = Field(..., ge=0, validation_alias=AliasChoices("timeToLive", "ttl"))

    @field_validator("source_address")
    @classmethod
    def _valid_source(cls, v: str) -> str:
        v = v.strip()
        if not is_ipv4_address(v):
            raise ValueError(f"not a dotted-quad IPv4 address: {v!r}")
        return v

    @field_validator("destination", "protocol")
    @classmethod
    def _strip(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


REQUIRED_FIELDS_MESSAGE = (
    "Missing or invalid fields. Required: sourceAddress (string), destination (string), "
    "destinationPort (number), protocol (string), timeToLive (number)."
)


def format_validation_errors(err: ValidationError, where: str = "") -> List[str]:
    out: List[str] = []
    for e in err.errors():
        loc = ".".join(str(p) for p in e.get("loc", ()))
        prefix = where
        if loc:
            prefix = f"{where}.{loc}" if where else loc
        msg = e.get("msg", "invalid")
        out.append(f"{prefix}: {msg}" if prefix else msg)
    return out


# ───────────────────────────── Network config ─────────────────────────────


@dataclass(frozen=True)
class NetworkConfig:
    dns_records: Tuple[NameRecord, ...] = ()
    routes: Tuple[Route, ...] = ()
    firewall_rules: Tuple[FirewallRule, ...] = ()
    firewall_default: str = "allow"


def dns_record_dicts(raw: Any) -> List[Any]:
    if isinstance(raw, list):
        return list(raw)
    if isinstance(raw, dict) and isinstance(raw.get("records"), list):
        return list(raw["records"])
    if isinstance(raw, dict) and isinstance(raw.get("hosts"), dict):
        return [{"name": name, "type": RECORD_ADDRESS, "address": addr} for name, addr in raw["hosts"].items()]
    if isinstance(raw, dict):
        # name -> address mapping; non-string values are ignored
        return [{"name": k, "type": RECORD_ADDRESS, "address": v} for k, v in raw.items() if isinstance(v, str)]
    return []


def _table(raw: Any, key: str, where: str, problems: List[str]) -> List[Any]:
    if isinstance(raw, list):
        return list(raw)
    if isinstance(raw, dict) and isinstance(raw.get(key), list):
        return list(raw[key])
    problems.append(f"{where}: expected a list or an object with a '{key}' list")
    return []


def parse_dns_records(raw: Any, problems: List[str]) -> List[NameRecord]:
    records: List[NameRecord] = []
    for i, item in enumerate(dns_record_dicts(raw)):
        try:
            records.append(DNSRecordModel.model_validate(item).to_record())
        except ValidationError as e:
            problems.extend(format_validation_errors(e, f"dns[{i}]"))
    return records


def parse_routes(raw: Any, problems: List[str]) -> List[Route]:
    routes: List[Route] = []
    for i, item in enumerate(_table(raw, "routes", "routes", problems)):
        try:
            routes.append(RouteModel.model_validate(item).to_route())
        except ValidationError as e:
            problems.extend(format_validation_errors(e, f"routes[{i}]"))
    return routes


def parse_firewall(raw: Any, problems: List[str]) -> Tuple[List[FirewallRule], str]:
    default_action = "allow"
    if isinstance(raw, dict) and "defaultAction" in raw:
        da = raw.get("defaultAction")
        if isinstance(da, str) and da.strip().lower() in ("allow", "deny"):
            default_action = da.strip().lower()
        else:
            problems.append(f"firewall.defaultAction: must be 'allow' or 'deny', got {da!r}")

    rules: List[FirewallRule] = []
    seen = set()
    for i, item in enumerate(_table(raw, "rules", "firewall", problems)):
        try:
            rule = FirewallRuleModel.model_validate(item).to_rule()
        except ValidationError as e:
            problems.extend(format_validation_errors(e, f"firewall.rules[{i}]"))
            continue
        if rule.id in seen:
            problems.append(f"firewall.rules[{i}].id: duplicate rule id {rule.id}")
        seen.add(rule.id)
        rules.append(rule)
    return rules, default_action


def build_network_config(dns_raw: Any, routes_raw: Any, firewall_raw: Any) -> NetworkConfig:
    """Normalize raw JSON values into a NetworkConfig or raise ConfigError."""
    problems: List[str] = []
    records = parse_dns_records(dns_raw, problems)
    routes = parse_routes(routes_raw, problems)
    rules, default_action = parse_firewall(firewall_raw, problems)
    if problems:
        raise ConfigError("Invalid network configuration:", problems)
    return NetworkConfig(
        dns_records=tuple(records),
        routes=tuple(routes),
        firewall_rules=tuple(rules),
        firewall_default=default_action,
    )


def load_json_safe(path: str) -> Any:
    """Read a JSON file, tolerating a UTF-8 BOM; dumps the raw text on parse errors."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = f.read()
    except OSError as e:
        log.error("Error reading file %s: %s", path, e)
        raise ConfigError(f"Error reading file {path}: {e}") from e

    clean = raw.lstrip("\ufeff").strip()
    try:
        return json.loads(clean)
    except json.JSONDecodeError as e:
        log.error("Failed to parse JSON file: %s", path)
        log.error("---- RAW FILE START ----\n%s\n---- RAW FILE END ----", raw)
        raise ConfigError(f"Failed to parse JSON file {path}: {e}") from e


# Sample tables shipped at the repository root, next to the package.
SAMPLE_CONFIG_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "config")


def default_config_dir() -> str:
    return os.getenv("PKTSIM_CONFIG_DIR") or SAMPLE_CONFIG_DIR


def load_network_config(config_dir: Optional[str] = None) -> NetworkConfig:
    config_dir = config_dir or default_config_dir()
    dns_raw = load_json_safe(os.path.join(config_dir, DNS_CONFIG_FILE))
    routes_raw = load_json_safe(os.path.join(config_dir, ROUTES_CONFIG_FILE))
    firewall_raw = load_json_safe(os.path.join(config_dir, FIREWALL_CONFIG_FILE))

    cfg = build_network_config(dns_raw, routes_raw, firewall_raw)

    log.info(
        "Loaded dnsConfig (normalized records):\n%s",
        json.dumps([{"name": r.name, "type": r.kind, "value": r.value} for r in cfg.dns_records], indent=2),
    )
    log.info(
        "Loaded %d routes and %d firewall rules (default %s)",
        len(cfg.routes),
        len(cfg.firewall_rules),
        cfg.firewall_default,
    )
    return cfg


__all__ = [
    "ConfigError",
    "NetworkConfig",
    "TraceRequest",
    "REQUIRED_FIELDS_MESSAGE",
    "DNSRecordModel",
    "RouteModel",
    "FirewallRuleModel",
    "build_network_config",
    "dns_record_dicts",
    "format_validation_errors",
    "load_json_safe",
    "load_network_config",
    "default_config_dir",
]
