"""
Configuration management and loading.

Builds the immutable rating configuration from defaults, caller
overrides and optional YAML files.
"""

from dataclasses import dataclass, field, fields, is_dataclass, replace
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Union

import yaml

from rating_requester.core.timing import DefaultTimingPolicy, TimingPolicy


class ConfigurationError(ValueError):
    """Raised when the rating configuration is missing or invalid."""


def _noop() -> None:
    return None


def _require_text(value: Any, name: str) -> None:
    if not isinstance(value, str):
        raise ConfigurationError(f"'{name}' must be a string")


@dataclass(frozen=True)
class StoreIds:
    """Application identifiers in the iOS App Store and Google Play."""
    ios: str
    android: str

    def __post_init__(self):
        """Both identifiers are required."""
        if not self.ios or not str(self.ios).strip():
            raise ConfigurationError(
                "You must specify your app's iOS store ID to use the rating requester"
            )
        if not self.android or not str(self.android).strip():
            raise ConfigurationError(
                "You must specify your app's Android store ID to use the rating requester"
            )


@dataclass(frozen=True)
class EnjoyingActions:
    """Button labels of the "are you enjoying this app?" gate."""
    accept: str = "Yes!"
    decline: str = "Not really"

    def __post_init__(self):
        for f in fields(self):
            _require_text(getattr(self, f.name), f"enjoying_actions.{f.name}")


@dataclass(frozen=True)
class ActionLabels:
    """Button labels of the rating dialog."""
    accept: str = "Ok, sure"
    delay: str = "Remind me later"
    decline: str = "No, thanks"

    def __post_init__(self):
        for f in fields(self):
            _require_text(getattr(self, f.name), f"action_labels.{f.name}")


@dataclass(frozen=True)
class Callbacks:
    """Hooks invoked after the user answers a dialog."""
    enjoying_app: Callable[[], Any] = _noop
    not_enjoying_app: Callable[[], Any] = _noop
    accept: Callable[[], Any] = _noop
    delay: Callable[[], Any] = _noop
    decline: Callable[[], Any] = _noop

    def __post_init__(self):
        for f in fields(self):
            if not callable(getattr(self, f.name)):
                raise ConfigurationError(f"'callbacks.{f.name}' must be callable")


@dataclass(frozen=True)
class RatingConfig:
    """Complete rating prompt policy."""
    enjoying_message: str = "Are you enjoying this app?"
    enjoying_actions: EnjoyingActions = field(default_factory=EnjoyingActions)
    callbacks: Callbacks = field(default_factory=Callbacks)
    title: str = "Rate Us!"
    message: str = "How about a rating on the app store?"
    action_labels: ActionLabels = field(default_factory=ActionLabels)
    store_ids: Optional[StoreIds] = None
    events_until_prompt: int = 1
    uses_until_prompt: int = 1
    days_before_reminding: int = 1
    show_is_enjoying_dialog: bool = True
    debug: bool = False
    timing_policy: TimingPolicy = field(default_factory=DefaultTimingPolicy)

    def __post_init__(self):
        """Validate thresholds, toggles and the timing policy."""
        for name in ("enjoying_message", "title", "message"):
            _require_text(getattr(self, name), name)
        for name, group in (
            ("enjoying_actions", EnjoyingActions),
            ("callbacks", Callbacks),
            ("action_labels", ActionLabels),
        ):
            if not isinstance(getattr(self, name), group):
                raise ConfigurationError(f"'{name}' must be a mapping of {group.__name__} fields")
        if self.store_ids is not None and not isinstance(self.store_ids, StoreIds):
            raise ConfigurationError("'store_ids' must be a StoreIds value")
        for name in ("events_until_prompt", "uses_until_prompt", "days_before_reminding"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ConfigurationError(f"'{name}' must be a non-negative integer")
        for name in ("show_is_enjoying_dialog", "debug"):
            if not isinstance(getattr(self, name), bool):
                raise ConfigurationError(f"'{name}' must be a boolean")
        if not isinstance(self.timing_policy, TimingPolicy):
            raise ConfigurationError("'timing_policy' must provide should_prompt()")


def _merge(base: Any, overrides: Mapping[str, Any], path: str) -> Any:
    """Merge overrides onto a config dataclass one field at a time.

    Nested groups given as mappings are merged recursively, so
    unspecified nested fields keep their current values.
    """
    allowed = {f.name for f in fields(base)}
    unknown = set(overrides.keys()) - allowed
    if unknown:
        raise ConfigurationError(f"Unknown keys in {path}: {sorted(unknown)}")

    changes = {}
    for name, value in overrides.items():
        current = getattr(base, name)
        if is_dataclass(current) and isinstance(value, Mapping):
            changes[name] = _merge(current, value, f"{path}.{name}")
        else:
            changes[name] = value
    return replace(base, **changes)


def build_rating_config(
    ios_store_id: str,
    android_store_id: str,
    overrides: Optional[Union[Mapping[str, Any], RatingConfig]] = None,
) -> RatingConfig:
    """Create a rating configuration from store ids and partial overrides.

    Args:
        ios_store_id: App Store identifier (required)
        android_store_id: Google Play identifier (required)
        overrides: Partial configuration merged field by field over
            defaults, or an already built RatingConfig

    Returns:
        Validated, immutable RatingConfig

    Raises:
        ConfigurationError: If a store id is missing or an override is invalid
    """
    store_ids = StoreIds(ios=ios_store_id, android=android_store_id)

    if isinstance(overrides, RatingConfig):
        return replace(overrides, store_ids=store_ids)

    overrides = dict(overrides or {})
    if "store_ids" in overrides:
        raise ConfigurationError("Store ids must be passed as arguments, not overrides")

    config = _merge(RatingConfig(), overrides, "config")
    return replace(config, store_ids=store_ids)


def load_rating_config(
    path: str,
    ios_store_id: Optional[str] = None,
    android_store_id: Optional[str] = None,
) -> RatingConfig:
    """Load and validate a rating configuration from a YAML file.

    The file may carry a 'store_ids' section with 'ios' and 'android'
    keys; explicit arguments take precedence over it. Callbacks and
    timing policies cannot be expressed in YAML.

    Args:
        path: Path to YAML configuration file
        ios_store_id: Optional App Store id overriding the file
        android_store_id: Optional Google Play id overriding the file

    Returns:
        Validated RatingConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ConfigurationError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Rating config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}") from e

    if raw_config is None:
        raw_config = {}
    if not isinstance(raw_config, dict):
        raise ConfigurationError("Configuration file must contain a mapping")

    for python_only in ("callbacks", "timing_policy"):
        if python_only in raw_config:
            raise ConfigurationError(f"'{python_only}' cannot be set from a config file")

    store_data = raw_config.pop("store_ids", {}) or {}
    if not isinstance(store_data, dict):
        raise ConfigurationError("'store_ids' must be a dictionary")
    unknown_store_keys = set(store_data.keys()) - {"ios", "android"}
    if unknown_store_keys:
        raise ConfigurationError(f"Unknown store_ids keys: {unknown_store_keys}")

    return build_rating_config(
        ios_store_id or store_data.get("ios"),
        android_store_id or store_data.get("android"),
        raw_config,
    )


def describe_config(config: RatingConfig) -> Dict[str, Any]:
    """Plain-data view of the YAML-expressible fields."""
    return {
        "store_ids": {
            "ios": config.store_ids.ios if config.store_ids else None,
            "android": config.store_ids.android if config.store_ids else None,
        },
        "events_until_prompt": config.events_until_prompt,
        "uses_until_prompt": config.uses_until_prompt,
        "days_before_reminding": config.days_before_reminding,
        "show_is_enjoying_dialog": config.show_is_enjoying_dialog,
        "debug": config.debug,
        "timing_policy": repr(config.timing_policy),
    }
