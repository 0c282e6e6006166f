"""
Centralized configuration management with validation and type conversion.

Every component of the gateway receives its settings from one ``Config``
instance that is resolved from the environment once at startup:
- CMS origin, custom API namespace and basic-auth credentials
- media proxy allow-list (uploads prefix, tunnel suffixes, CMS hosts)
- review sync secrets
- locale routing settings
- timeouts and logging
"""

import os
import logging
from typing import Optional, Dict, Any, List, Tuple
from dataclasses import dataclass, field
from enum import Enum
from urllib.parse import urlsplit, urlunsplit, unquote

from dotenv import load_dotenv


load_dotenv()


class ConfigError(ValueError):
    """Raised when the environment holds an invalid configuration value."""


class Environment(Enum):
    """Application environment types."""
    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"


@dataclass
class TimeoutConfig:
    """Timeout configuration for outbound calls (seconds)."""
    cms: float = 15.0
    media: float = 20.0
    serpapi: float = 20.0
    forms: float = 15.0

    def get(self, operation: str) -> float:
        """Get timeout for a specific operation, defaulting to the CMS timeout."""
        return getattr(self, operation, self.cms)


@dataclass
class CMSConfig:
    """Headless CMS connection settings.

    ``api_url`` points at the core REST namespace (``.../wp-json/wp/v2``).
    Credentials embedded in the URL are moved into ``auth_user``/``auth_pass``
    so that no request URL ever carries them.
    """
    api_url: Optional[str] = None
    custom_api_url: Optional[str] = None
    origin_url: Optional[str] = None
    auth_user: Optional[str] = None
    auth_pass: Optional[str] = None
    custom_namespace: str = "qualitour/v1"
    user_agent: str = "Mozilla/5.0 (compatible; TourGateway-API/1.0)"

    @property
    def basic_auth(self) -> Optional[Tuple[str, str]]:
        """Return (user, password) only when both halves are configured."""
        if self.auth_user and self.auth_pass:
            return self.auth_user, self.auth_pass
        return None

    @property
    def origin(self) -> Optional[str]:
        """Scheme + host of the CMS, used for non-REST endpoints."""
        if self.origin_url:
            return self.origin_url.rstrip('/')
        if self.api_url:
            parts = urlsplit(self.api_url)
            return f"{parts.scheme}://{parts.netloc}"
        return None

    @property
    def custom_api_base(self) -> Optional[str]:
        """Base URL of the site-specific REST namespace (reviews, etc.)."""
        if self.custom_api_url:
            return self.custom_api_url.rstrip('/')
        if not self.api_url:
            return None
        api = self.api_url.rstrip('/')
        if f"/wp-json/{self.custom_namespace}" in api:
            return api
        if '/wp-json/wp/v2' in api:
            return api.replace('/wp-json/wp/v2', f"/wp-json/{self.custom_namespace}")
        return f"{self.origin}/wp-json/{self.custom_namespace}"

    def hostnames(self) -> List[str]:
        """Hostnames of every configured CMS URL."""
        hosts = []
        for candidate in (self.api_url, self.custom_api_url, self.origin_url):
            if not candidate:
                continue
            host = urlsplit(candidate).hostname
            if host and host not in hosts:
                hosts.append(host)
        return hosts


@dataclass
class MediaProxyConfig:
    """Media reverse proxy allow-list settings."""
    uploads_prefix: str = "/wp-content/uploads/"
    tunnel_suffixes: List[str] = field(default_factory=lambda: ['.localsite.io'])
    allowed_hosts: List[str] = field(default_factory=list)
    cache_control: str = "public, max-age=31536000, immutable"
    user_agent: str = "Mozilla/5.0 (compatible; TourGateway-MediaProxy/1.0)"
    chunk_size: int = 65536


@dataclass
class ReviewsConfig:
    """Third-party review source and sync settings."""
    serpapi_key: Optional[str] = None
    serpapi_url: str = "https://serpapi.com/search"
    place_id: str = "ChIJXUMRKHd0hlQRJ5matAPcxfE"
    sync_key: Optional[str] = None
    business_name: str = "Qualitour - Vancouver Branch"
    business_address: str = "Vancouver, BC, Canada"


@dataclass
class LocaleConfig:
    """Locale routing settings."""
    locales: Tuple[str, ...] = ('en', 'zh')
    default_locale: str = 'en'
    bypass_prefixes: Tuple[str, ...] = ('/api', '/static', '/_next', '/healthz')


@dataclass
class ContactConfig:
    """Form proxy settings."""
    allowed_form_ids: List[str] = field(default_factory=list)


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: Optional[str] = None
    max_bytes: int = 10485760  # 10MB
    backup_count: int = 5


class Config:
    """Centralized configuration with validation and type conversion."""

    def __init__(self):
        """Initialize configuration from environment variables."""
        self.environment = self._get_environment()
        self.debug = self._get_bool("DEBUG", False)
        self.cors_origins = self._get_list("CORS_ORIGINS", ["*"])

        raw_api_url = (self._get_optional("WORDPRESS_API_URL")
                       or self._get_optional("NEXT_PUBLIC_WORDPRESS_API_URL"))
        custom_api_url = (self._get_optional("WORDPRESS_CUSTOM_API_URL")
                          or self._get_optional("NEXT_PUBLIC_WORDPRESS_CUSTOM_API_URL"))
        api_url, url_user, url_pass = self._split_credentials(raw_api_url)

        self.cms_config = CMSConfig(
            api_url=api_url,
            custom_api_url=custom_api_url,
            origin_url=(self._get_optional("WORDPRESS_ORIGIN")
                        or self._get_optional("NEXT_PUBLIC_WORDPRESS_ORIGIN")),
            auth_user=self._get_optional("WORDPRESS_AUTH_USER") or url_user,
            auth_pass=self._get_optional("WORDPRESS_AUTH_PASS") or url_pass,
            custom_namespace=self._get_str("CMS_CUSTOM_NAMESPACE", "qualitour/v1"),
        )

        self.media_config = MediaProxyConfig(
            uploads_prefix=self._get_str("MEDIA_UPLOADS_PREFIX", "/wp-content/uploads/"),
            tunnel_suffixes=self._get_list("MEDIA_TUNNEL_SUFFIXES", ['.localsite.io']),
            allowed_hosts=self.cms_config.hostnames(),
            cache_control=self._get_str("MEDIA_CACHE_CONTROL", "public, max-age=31536000, immutable"),
        )

        self.reviews_config = ReviewsConfig(
            serpapi_key=self._get_optional("SERPAPI_KEY"),
            place_id=self._get_str("SERPAPI_PLACE_ID", "ChIJXUMRKHd0hlQRJ5matAPcxfE"),
            sync_key=self._get_optional("REVIEWS_SYNC_KEY") or self._derive_sync_key(raw_api_url),
        )

        locales = tuple(self._get_list("LOCALES", ['en', 'zh']))
        self.locale_config = LocaleConfig(
            locales=locales,
            default_locale=self._get_str("DEFAULT_LOCALE", 'en'),
        )

        self.contact_config = ContactConfig(
            allowed_form_ids=self._get_list("CONTACT_FORM_IDS", []),
        )

        self.timeout_config = TimeoutConfig(
            cms=self._get_float("TIMEOUT_CMS", 15.0),
            media=self._get_float("TIMEOUT_MEDIA", 20.0),
            serpapi=self._get_float("TIMEOUT_SERPAPI", 20.0),
            forms=self._get_float("TIMEOUT_FORMS", 15.0),
        )

        self.logging_config = LoggingConfig(
            level=self._get_str("LOG_LEVEL", "INFO"),
            format=self._get_str("LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"),
            file=self._get_optional("LOG_FILE"),
            max_bytes=self._get_int("LOG_MAX_BYTES", 10485760),
            backup_count=self._get_int("LOG_BACKUP_COUNT", 5),
        )

        self._validate()

    def _get_environment(self) -> Environment:
        """Get application environment."""
        env_str = self._get_str("ENVIRONMENT", "development").lower()
        try:
            return Environment(env_str)
        except ValueError:
            raise ConfigError(f"Invalid environment: {env_str}")

    @staticmethod
    def _split_credentials(url: Optional[str]) -> Tuple[Optional[str], Optional[str], Optional[str]]:
        """Strip ``user:pass@`` from a URL, returning the clean URL and the credentials."""
        if not url:
            return url, None, None
        parts = urlsplit(url)
        if not parts.username:
            return url, None, None
        netloc = parts.hostname or ''
        if parts.port:
            netloc = f"{netloc}:{parts.port}"
        clean = urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))
        password = unquote(parts.password) if parts.password else None
        return clean, unquote(parts.username), password

    @staticmethod
    def _derive_sync_key(api_url: Optional[str]) -> Optional[str]:
        """Fallback sync key: ``sync-key-`` + the configured API URL without its scheme.

        Uses the URL as configured, embedded credentials included.
        """
        if not api_url or '//' not in api_url:
            return None
        return 'sync-key-' + api_url.split('//', 1)[1]

    def _get_optional(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Get optional environment variable; empty strings count as unset."""
        value = os.getenv(key)
        if value is None or not value.strip():
            return default
        return value.strip()

    def _get_str(self, key: str, default: str) -> str:
        """Get string environment variable with default."""
        return os.getenv(key, default)

    def _get_int(self, key: str, default: int) -> int:
        """Get integer environment variable with default.

        Raises:
            ConfigError: If value cannot be converted to int
        """
        value = os.getenv(key)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            raise ConfigError(f"Invalid integer for {key}: {value}")

    def _get_float(self, key: str, default: float) -> float:
        """Get float environment variable with default.

        Raises:
            ConfigError: If value cannot be converted to float
        """
        value = os.getenv(key)
        if value is None:
            return default
        try:
            return float(value)
        except ValueError:
            raise ConfigError(f"Invalid float for {key}: {value}")

    def _get_bool(self, key: str, default: bool) -> bool:
        """Get boolean environment variable with default."""
        value = os.getenv(key)
        if value is None:
            return default
        return value.lower() in ('1', 'true', 'yes', 'on')

    def _get_list(self, key: str, default: list) -> list:
        """Get comma separated list environment variable with default."""
        value = os.getenv(key)
        if value is None:
            return default
        return [item.strip() for item in value.split(',') if item.strip()]

    def _validate(self):
        """Validate configuration values."""
        for attr_name in ('cms', 'media', 'serpapi', 'forms'):
            timeout = getattr(self.timeout_config, attr_name)
            if timeout <= 0:
                raise ConfigError(f"Invalid timeout for {attr_name}: {timeout}")

        for name in ('api_url', 'custom_api_url', 'origin_url'):
            url = getattr(self.cms_config, name)
            if url and urlsplit(url).scheme not in ('http', 'https'):
                raise ConfigError(f"Invalid CMS URL for {name}: {url}")

        if not self.locale_config.locales:
            raise ConfigError("LOCALES must name at least one locale")
        if self.locale_config.default_locale not in self.locale_config.locales:
            raise ConfigError(
                f"Default locale {self.locale_config.default_locale!r} is not one of "
                f"{list(self.locale_config.locales)}"
            )

        if not self.media_config.uploads_prefix.startswith('/'):
            raise ConfigError(f"Invalid uploads prefix: {self.media_config.uploads_prefix}")

        logger = logging.getLogger(__name__)
        if not self.cms_config.api_url:
            logger.warning("WORDPRESS_API_URL not set - content reads will fail")
        if not self.reviews_config.serpapi_key:
            logger.warning("SERPAPI_KEY not set - review sync will be unavailable")

    def get_timeout(self, operation: str) -> float:
        """Get timeout for a specific operation."""
        return self.timeout_config.get(operation)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to a dictionary for debugging (no secrets)."""
        return {
            'environment': self.environment.value,
            'debug': self.debug,
            'cors_origins': self.cors_origins,
            'cms': {
                'api_url': self.cms_config.api_url,
                'custom_api_base': self.cms_config.custom_api_base,
                'origin': self.cms_config.origin,
                'auth': bool(self.cms_config.basic_auth),
            },
            'media': {
                'uploads_prefix': self.media_config.uploads_prefix,
                'tunnel_suffixes': self.media_config.tunnel_suffixes,
                'allowed_hosts': self.media_config.allowed_hosts,
            },
            'reviews': {
                'serpapi': bool(self.reviews_config.serpapi_key),
                'sync_key': bool(self.reviews_config.sync_key),
            },
            'locales': list(self.locale_config.locales),
            'timeouts': {
                'cms': self.timeout_config.cms,
                'media': self.timeout_config.media,
                'serpapi': self.timeout_config.serpapi,
                'forms': self.timeout_config.forms,
            },
        }


_config: Optional[Config] = None


def get_config() -> Config:
    """Get the process configuration, resolving it on first use."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def setup_logging(config: Optional[Config] = None):
    """Set up logging based on configuration."""
    from logging.handlers import RotatingFileHandler

    config = config or get_config()

    logging.basicConfig(
        level=getattr(logging, config.logging_config.level.upper(), logging.INFO),
        format=config.logging_config.format,
    )

    root = logging.getLogger()
    log_file = config.logging_config.file
    already_attached = log_file and any(
        isinstance(handler, RotatingFileHandler)
        and handler.baseFilename == os.path.abspath(log_file)
        for handler in root.handlers
    )
    if log_file and not already_attached:
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=config.logging_config.max_bytes,
            backupCount=config.logging_config.backup_count,
        )
        file_handler.setFormatter(logging.Formatter(config.logging_config.format))
        root.addHandler(file_handler)

    logging.getLogger('aiohttp').setLevel(logging.WARNING)
    logging.getLogger('asyncio').setLevel(logging.WARNING)

    if config.debug:
        logging.getLogger().setLevel(logging.DEBUG)
