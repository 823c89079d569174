"""
Configuration module for authcookie.

An ``AuthPolicy`` is the fully resolved configuration for one request.
Hosts that configure different locations differently build one policy per
location (``with_overrides``, or ``LocationPolicies`` from a config file)
and hand the matching one to the dispatcher.
"""

from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from ..crypto.digest import DigestScheme
from ..errors import ConfigurationError
from ..util.config import get_config_value, load_config_file, parse_seconds, ENV_PREFIX


DEFAULT_TIMEOUT = 86400


class OverrideMode(Enum):
    """How an Authorization header already present on the request is treated."""

    USE_EXISTING = 0    # just use it if supplied
    PREFER_COOKIE = 1   # use the cookie if it authenticates
    COOKIE_ONLY = 2     # drop the header, cookie only

    @classmethod
    def parse(cls, value: Union[int, str, "OverrideMode"]) -> "OverrideMode":
        """Accept the numeric level or the mode name (either case, '-' or '_')."""
        if isinstance(value, cls):
            return value
        text = str(value).strip()
        if text.isdigit():
            try:
                return cls(int(text))
            except ValueError:
                # unknown levels fall back to cookie-only
                return cls.COOKIE_ONLY
        try:
            return cls[text.upper().replace("-", "_")]
        except KeyError:
            raise ConfigurationError(f"Unknown override mode: {value}")


@dataclass(frozen=True)
class AuthPolicy:
    """Resolved, immutable policy for a request."""

    cookie_name: str
    secret: bytes = field(repr=False)
    timeout: int = DEFAULT_TIMEOUT
    redirect_url: Optional[str] = None
    cookie_options: str = ""
    override: OverrideMode = OverrideMode.COOKIE_ONLY
    digest_scheme: DigestScheme = DigestScheme.HMAC_SHA256

    def __post_init__(self):
        # frozen: normalize through object.__setattr__
        for name in ("cookie_name", "cookie_options"):
            if not isinstance(getattr(self, name), str):
                raise ConfigurationError(f"{name} must be a string")
        if self.redirect_url is not None and not isinstance(self.redirect_url, str):
            raise ConfigurationError("redirect_url must be a string")
        if isinstance(self.secret, str):
            object.__setattr__(self, "secret", self.secret.encode("utf-8"))
        elif not isinstance(self.secret, bytes):
            raise ConfigurationError("secret must be a string")
        try:
            object.__setattr__(self, "timeout", parse_seconds(self.timeout))
            object.__setattr__(self, "digest_scheme", DigestScheme.parse(self.digest_scheme))
        except ValueError as e:
            raise ConfigurationError(str(e), cause=e)
        object.__setattr__(self, "override", OverrideMode.parse(self.override))
        if self.redirect_url == "":
            object.__setattr__(self, "redirect_url", None)

    @property
    def enabled(self) -> bool:
        """An empty cookie name disables cookie authentication."""
        return bool(self.cookie_name)

    def with_overrides(self, **changes) -> "AuthPolicy":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    def validate(self) -> bool:
        """Validate the policy."""
        if not self.enabled:
            return True
        if any(c in self.cookie_name for c in "=; \t"):
            raise ConfigurationError(f"Invalid cookie name: {self.cookie_name!r}")
        if not self.secret:
            raise ConfigurationError("secret is required")
        if self.timeout < 0:
            raise ConfigurationError("timeout must not be negative")
        return True

    @classmethod
    def from_env(cls, prefix: str = ENV_PREFIX) -> "AuthPolicy":
        """
        Create a policy from environment variables.

        Reads ``<prefix>NAME``, ``SECRET``, ``TIMEOUT``, ``AUTHURL``,
        ``OPTIONS``, ``OVERRIDE`` and ``DIGEST``.
        """
        return cls(
            cookie_name=get_config_value("name", "", env_prefix=prefix),
            secret=get_config_value("secret", "", env_prefix=prefix),
            timeout=get_config_value("timeout", str(DEFAULT_TIMEOUT), env_prefix=prefix),
            redirect_url=get_config_value("authurl", None, env_prefix=prefix),
            cookie_options=get_config_value("options", "", env_prefix=prefix),
            override=get_config_value("override", OverrideMode.COOKIE_ONLY.value,
                                      env_prefix=prefix),
            digest_scheme=get_config_value("digest", DigestScheme.HMAC_SHA256.value,
                                           env_prefix=prefix),
        )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "AuthPolicy":
        """Create a policy from a mapping of field names to values."""
        unknown = set(data) - _POLICY_FIELDS
        if unknown:
            raise ConfigurationError(f"Unknown policy settings: {', '.join(sorted(unknown))}")
        try:
            return cls(**data)
        except TypeError as e:
            raise ConfigurationError(f"Incomplete policy settings: {e}", cause=e)

    @classmethod
    def from_file(cls, file_path: str) -> "AuthPolicy":
        """Create a policy from a JSON or YAML file holding the policy fields."""
        return cls.from_mapping(_load(file_path))


_POLICY_FIELDS = {f.name for f in fields(AuthPolicy)}


def _load(file_path: str) -> Dict[str, Any]:
    try:
        return load_config_file(file_path)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Cannot load {file_path}: {e}", cause=e)


class LocationPolicies:
    """
    Policies per URL path prefix.

    A request gets the policy of the longest prefix its path starts with,
    or the default policy. Instances can be passed directly as the
    middleware's ``policy_resolver``.

    File layout::

        defaults:
          cookie_name: auth
          secret: s3cret
        locations:
          /admin:
            timeout: 15m
          /public:
            cookie_name: ""
    """

    def __init__(self, default: AuthPolicy, locations: Optional[Dict[str, AuthPolicy]] = None):
        self.default = default
        self.locations = dict(locations or {})
        self._prefixes = sorted(self.locations, key=len, reverse=True)

    def resolve(self, path: str) -> AuthPolicy:
        for prefix in self._prefixes:
            if path.startswith(prefix):
                return self.locations[prefix]
        return self.default

    def __call__(self, request) -> AuthPolicy:
        return self.resolve(request.path)

    def validate(self) -> bool:
        for policy in [self.default, *self.locations.values()]:
            policy.validate()
        return True

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "LocationPolicies":
        unknown = set(data) - {"defaults", "locations"}
        if unknown:
            raise ConfigurationError(f"Unknown configuration sections: {', '.join(sorted(unknown))}")

        default = AuthPolicy.from_mapping(data.get("defaults") or {})

        overrides = {}
        for prefix, settings in (data.get("locations") or {}).items():
            settings = settings or {}
            unknown = set(settings) - _POLICY_FIELDS
            if unknown:
                raise ConfigurationError(
                    f"Unknown settings for {prefix}: {', '.join(sorted(unknown))}")
            overrides[prefix] = settings

        # enclosing locations apply first, innermost last
        ordered = sorted(overrides, key=len)
        locations = {}
        for prefix in ordered:
            merged = {}
            for outer in ordered:
                if prefix.startswith(outer):
                    merged.update(overrides[outer])
            locations[prefix] = default.with_overrides(**merged)

        return cls(default, locations)

    @classmethod
    def from_file(cls, file_path: str) -> "LocationPolicies":
        return cls.from_mapping(_load(file_path))
