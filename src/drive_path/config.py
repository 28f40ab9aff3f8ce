"""Application configuration loaded from environment variables."""

import os
from dataclasses import dataclass

DEFAULT_TOKEN_URL = "https://www.googleapis.com/oauth2/v4/token"
DEFAULT_API_BASE_URL = "https://www.googleapis.com/drive/v3"
DEFAULT_UPLOAD_BASE_URL = "https://www.googleapis.com/upload/drive/v3"


@dataclass(frozen=True)
class AppConfig:
    """Centralized application configuration.

    Required fields have no defaults and will cause a KeyError at startup
    if the corresponding environment variable is missing. Endpoint URLs and
    tuning knobs have sensible defaults but can be overridden via environment
    variables.
    """

    # Required: no defaults, fail at startup if missing
    client_id: str
    client_secret: str
    refresh_token: str

    # Drive layout
    root_id: str = "root"
    root_name: str = "My Drive"

    # Upstream endpoints
    token_url: str = DEFAULT_TOKEN_URL
    api_base_url: str = DEFAULT_API_BASE_URL
    upload_base_url: str = DEFAULT_UPLOAD_BASE_URL

    # Tuning
    token_expiry_margin_seconds: int = 100
    request_timeout_seconds: float = 30.0
    page_size: int = 1000
    thumbnail_workers: int = 1


def load_config() -> AppConfig:
    """Construct an AppConfig from environment variables.

    Required environment variables:
        DP_CLIENT_ID: OAuth2 client ID of the Google API project.
        DP_CLIENT_SECRET: OAuth2 client secret of the Google API project.
        DP_REFRESH_TOKEN: Long-lived refresh token for the drive owner.

    Optional environment variables (with defaults):
        DP_ROOT_ID: Drive ID that "/" maps to (default: root).
        DP_ROOT_NAME: Display name of the root entry (default: My Drive).
        DP_TOKEN_URL: OAuth2 token endpoint.
        DP_API_BASE_URL: Drive v3 API base URL.
        DP_UPLOAD_BASE_URL: Drive v3 upload API base URL.
        DP_TOKEN_EXPIRY_MARGIN_SECONDS: Seconds subtracted from a token's
            advertised lifetime before it is considered expired (default: 100).
        DP_REQUEST_TIMEOUT_SECONDS: Transport timeout per outbound call (default: 30).
        DP_PAGE_SIZE: Page size for child listings (default: 1000).
        DP_THUMBNAIL_WORKERS: Worker threads for full folder listings (default: 1).

    Returns:
        Configured AppConfig instance.
    """
    return AppConfig(
        client_id=os.environ["DP_CLIENT_ID"],
        client_secret=os.environ["DP_CLIENT_SECRET"],
        refresh_token=os.environ["DP_REFRESH_TOKEN"],
        root_id=os.environ.get("DP_ROOT_ID", "root"),
        root_name=os.environ.get("DP_ROOT_NAME", "My Drive"),
        token_url=os.environ.get("DP_TOKEN_URL", DEFAULT_TOKEN_URL),
        api_base_url=os.environ.get("DP_API_BASE_URL", DEFAULT_API_BASE_URL),
        upload_base_url=os.environ.get("DP_UPLOAD_BASE_URL", DEFAULT_UPLOAD_BASE_URL),
        token_expiry_margin_seconds=int(os.environ.get("DP_TOKEN_EXPIRY_MARGIN_SECONDS", "100")),
        request_timeout_seconds=float(os.environ.get("DP_REQUEST_TIMEOUT_SECONDS", "30")),
        page_size=int(os.environ.get("DP_PAGE_SIZE", "1000")),
        thumbnail_workers=int(os.environ.get("DP_THUMBNAIL_WORKERS", "1")),
    )
