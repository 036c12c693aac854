"""Rule configuration: which rules run and how they are constructed."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

import yaml

from .errors import ConfigError
from .rules import Rule
from .rules.dynamic_calls import DynamicCallsRule
from .rules.restricted_cache_group import RestrictedCacheGroupRule
from .severity import Severity
from .utils import read_yaml_file

# Fixed registration order; the engine dispatches in this order.
RULE_REGISTRY: Dict[str, Callable[..., Rule]] = {
    "dynamic_calls": DynamicCallsRule,
    "restricted_cache_group": RestrictedCacheGroupRule,
}

# Config keys accepted per rule, mapped onto constructor arguments.
RULE_OPTIONS: Dict[str, Dict[str, str]] = {
    "dynamic_calls": {
        "restricted_names": "restricted_names",
        "severity": "severity",
    },
    "restricted_cache_group": {
        "target_functions": "target_functions",
        "argument_position": "position",
        "restricted_names": "restricted_names",
        "severity": "severity",
        "case_sensitive": "case_sensitive",
    },
}

LIST_OPTIONS = ("restricted_names", "target_functions")
BOOL_OPTIONS = ("case_sensitive",)


@dataclass
class RuleSettings:
    enabled: bool = True
    options: Dict[str, Any] = field(default_factory=dict)


@dataclass
class GuardrailsConfig:
    """Per-rule settings keyed by registry name."""

    rules: Dict[str, RuleSettings] = field(
        default_factory=lambda: {name: RuleSettings() for name in RULE_REGISTRY}
    )

    def enabled_rules(self) -> List[str]:
        return [name for name in RULE_REGISTRY if self.rules.get(name, RuleSettings()).enabled]


def parse_config(data: Optional[Mapping[str, Any]]) -> GuardrailsConfig:
    """Validate a raw mapping (as loaded from YAML) into a :class:`GuardrailsConfig`."""

    config = GuardrailsConfig()
    if data is None:
        return config
    if not isinstance(data, Mapping):
        raise ConfigError("Configuration root must be a mapping")

    sections = data.get("rules") or {}
    if not isinstance(sections, Mapping):
        raise ConfigError("'rules' must be a mapping of rule name to settings")

    for name, section in sections.items():
        if name not in RULE_REGISTRY:
            raise ConfigError(f"Unknown rule {name!r}; expected one of {sorted(RULE_REGISTRY)}")
        config.rules[name] = _parse_rule_section(name, section)
    return config


def _parse_rule_section(name: str, section: Any) -> RuleSettings:
    if section is None:
        return RuleSettings()
    if not isinstance(section, Mapping):
        raise ConfigError(f"Settings for rule {name!r} must be a mapping")

    enabled = section.get("enabled", True)
    if not isinstance(enabled, bool):
        raise ConfigError(f"{name}: 'enabled' must be true or false")

    accepted = RULE_OPTIONS[name]
    options: Dict[str, Any] = {}
    for key, value in section.items():
        if key == "enabled":
            continue
        if key not in accepted:
            raise ConfigError(f"{name}: unknown option {key!r}")
        if key in LIST_OPTIONS and not isinstance(value, list):
            raise ConfigError(f"{name}: {key!r} must be a list")
        if key == "severity":
            value = _parse_severity(name, value)
        if key in BOOL_OPTIONS and not isinstance(value, bool):
            raise ConfigError(f"{name}: {key!r} must be true or false")
        options[accepted[key]] = value
    return RuleSettings(enabled=enabled, options=options)


def _parse_severity(name: str, value: Any) -> Severity:
    try:
        return Severity(str(value).upper())
    except ValueError as exc:
        raise ConfigError(f"{name}: unsupported severity {value!r}") from exc


def load_config(path: Optional[Path]) -> GuardrailsConfig:
    """Load configuration from YAML; a missing or absent file yields the defaults."""

    if path is None:
        return GuardrailsConfig()
    try:
        data = read_yaml_file(Path(path))
    except yaml.YAMLError as exc:
        raise ConfigError(f"Cannot parse configuration {path}: {exc}") from exc
    return parse_config(data)


def build_rules(config: Optional[GuardrailsConfig] = None) -> List[Rule]:
    """Instantiate every enabled rule; configuration faults surface here, before scanning."""

    if config is None:
        config = GuardrailsConfig()
    rules: List[Rule] = []
    for name in config.enabled_rules():
        settings = config.rules.get(name, RuleSettings())
        try:
            rules.append(RULE_REGISTRY[name](**settings.options))
        except TypeError as exc:
            raise ConfigError(f"{name}: {exc}") from exc
    return rules
