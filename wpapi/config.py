"""Чтение конфигурации клиента: config/wp-sites.yml + секреты из env."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import yaml

from .executor import DEFAULT_MAX_RETRY_ATTEMPTS
from .taxonomy import ConfigurationError

AUTH_OAUTH1 = "oauth1"
AUTH_BASIC = "basic"


@dataclass
class SiteConfig:
    site_id: str
    endpoint: str  # корень API, например https://example.com/wp-json
    name: Optional[str] = None
    auth: str = AUTH_OAUTH1
    user: Optional[str] = None  # из env WP_SITE_<site_id>_USER
    app_password: Optional[str] = None  # из env WP_SITE_<site_id>_APP_PASSWORD
    client_key: Optional[str] = None  # из env WP_SITE_<site_id>_CLIENT_KEY
    client_secret: Optional[str] = None
    access_token: Optional[str] = None
    access_token_secret: Optional[str] = None
    max_retry_attempts: int = DEFAULT_MAX_RETRY_ATTEMPTS
    timeout_sec: int = 30


@dataclass
class WPApiConfig:
    """Сайты и глобальные параметры из конфига."""
    sites: List[SiteConfig]
    max_retry_attempts: int = DEFAULT_MAX_RETRY_ATTEMPTS
    timeout_sec: int = 30

    def get_site(self, site_id: str) -> SiteConfig:
        for s in self.sites:
            if s.site_id == site_id:
                return s
        raise ConfigurationError(f"site '{site_id}' not found in config")


def _env_key(site_id: str, suffix: str) -> str:
    safe_id = site_id.upper().replace("-", "_")
    return f"WP_SITE_{safe_id}_{suffix}"


def _env(site_id: str, suffix: str) -> Optional[str]:
    return os.environ.get(_env_key(site_id, suffix), "").strip() or None


def load_sites_yaml(path: Path) -> dict:
    if not path.exists():
        return {}
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Ошибка разбора YAML в {path}: {e}. Проверьте синтаксис (отступы, кавычки)."
        ) from e
    if not data or not isinstance(data, dict):
        return {}
    return data


def load_sites_list(config_path: Path) -> List[dict]:
    """Загрузить только список сайтов из YAML (без секретов). Для list-sites."""
    sites = load_sites_yaml(config_path).get("sites")
    if not isinstance(sites, list):
        return []
    return [s for s in sites if isinstance(s, dict) and (s.get("site_id") or "").strip()]


def _positive_int(data: dict, key: str, default: int) -> int:
    try:
        value = int(data.get(key, default))
    except (TypeError, ValueError):
        raise ConfigurationError(f"config: {key} должен быть целым числом") from None
    if value < 0:
        raise ConfigurationError(f"config: {key} должен быть >= 0")
    return value


def _site_credentials(site: SiteConfig) -> None:
    """Подставить секреты из env и проверить, что их хватает для выбранного auth."""
    sid = site.site_id
    if site.auth == AUTH_OAUTH1:
        site.client_key = _env(sid, "CLIENT_KEY")
        site.client_secret = _env(sid, "CLIENT_SECRET")
        site.access_token = _env(sid, "ACCESS_TOKEN")
        site.access_token_secret = _env(sid, "ACCESS_TOKEN_SECRET")
        if not (site.client_key and site.client_secret and site.access_token and site.access_token_secret):
            raise ConfigurationError(
                f"Для сайта {sid} задайте переменные окружения {_env_key(sid, 'CLIENT_KEY')}, "
                f"{_env_key(sid, 'CLIENT_SECRET')}, {_env_key(sid, 'ACCESS_TOKEN')} "
                f"и {_env_key(sid, 'ACCESS_TOKEN_SECRET')} (OAuth1)."
            )
    else:
        site.user = _env(sid, "USER")
        site.app_password = _env(sid, "APP_PASSWORD")
        if not (site.user and site.app_password):
            raise ConfigurationError(
                f"Для сайта {sid} задайте переменные окружения "
                f"{_env_key(sid, 'USER')} и {_env_key(sid, 'APP_PASSWORD')} (Basic Auth, только для разработки)."
            )


def load_config(
    config_path: Optional[Path] = None,
    project_root: Optional[Path] = None,
) -> WPApiConfig:
    """Загрузить конфиг и секреты. При отсутствии обязательных полей — ConfigurationError (ValueError)."""
    if project_root is None:
        project_root = Path(__file__).resolve().parent.parent
    if config_path is None:
        config_path = project_root / "config" / "wp-sites.yml"

    data = load_sites_yaml(config_path)
    raw_sites = data.get("sites")
    if not isinstance(raw_sites, list) or not raw_sites:
        raise ConfigurationError(
            f"Конфиг не найден или пуст: {config_path}. "
            "Должен быть YAML с ключом 'sites' и списком объектов site_id, endpoint."
        )

    max_retry_attempts = _positive_int(data, "max_retry_attempts", DEFAULT_MAX_RETRY_ATTEMPTS)
    timeout_sec = _positive_int(data, "timeout_sec", 30)

    site_configs: List[SiteConfig] = []
    for i, s in enumerate(raw_sites):
        if not isinstance(s, dict):
            raise ConfigurationError(f"config/wp-sites.yml: sites[{i}] должен быть объектом")
        site_id = (s.get("site_id") or "").strip()
        endpoint = (s.get("endpoint") or "").strip().rstrip("/")
        name = (s.get("name") or "").strip() or None
        auth = (s.get("auth") or AUTH_OAUTH1).strip().lower()
        if not site_id:
            raise ConfigurationError(f"config/wp-sites.yml: sites[{i}] должен содержать site_id")
        if not endpoint:
            raise ConfigurationError(
                f"config/wp-sites.yml: sites[{i}] (site_id={site_id}) должен содержать endpoint"
            )
        if auth not in (AUTH_OAUTH1, AUTH_BASIC):
            raise ConfigurationError(
                f"config/wp-sites.yml: sites[{i}] (site_id={site_id}): auth должен быть oauth1 или basic"
            )
        site = SiteConfig(
            site_id=site_id,
            endpoint=endpoint,
            name=name,
            auth=auth,
            max_retry_attempts=_positive_int(s, "max_retry_attempts", max_retry_attempts),
            timeout_sec=_positive_int(s, "timeout_sec", timeout_sec),
        )
        _site_credentials(site)
        site_configs.append(site)

    return WPApiConfig(
        sites=site_configs,
        max_retry_attempts=max_retry_attempts,
        timeout_sec=timeout_sec,
    )
