# config.py
# Description: Configuration settings for the PKM server application.
#
# Imports
import configparser
import os
from pathlib import Path
from typing import Optional, Dict, Any, List
#
# 3rd-party Libraries
from loguru import logger
#
# Local Imports
#
########################################################################################################################
#
# Functions:

# --- Constants ---
DEFAULT_JWT_SECRET = "a_very_insecure_default_secret_key_for_dev_only"
DEFAULT_SINGLE_USER_API_KEY = "default-secret-key-for-single-user"

PACKAGE_ROOT = Path(__file__).resolve().parent.parent.parent
DEFAULT_CONFIG_PATH = PACKAGE_ROOT / "Config_Files" / "config.txt"

# Image types accepted by the upload endpoint
DEFAULT_ALLOWED_IMAGE_MIMETYPES = ["image/jpeg", "image/png", "image/gif", "image/webp"]
DEFAULT_MAX_UPLOAD_SIZE_BYTES = 10 * 1024 * 1024


def load_config_file(config_path: Optional[Path] = None) -> configparser.ConfigParser:
    """
    Reads the optional INI config file. A missing file yields an empty parser,
    so every value falls back to its environment variable or default.
    """
    if config_path is None:
        env_path = os.getenv("PKM_CONFIG_FILE")
        config_path = Path(env_path) if env_path else DEFAULT_CONFIG_PATH

    config_parser = configparser.ConfigParser()
    if not config_path.exists():
        logger.debug(f"No config file at {config_path}; using environment variables and defaults.")
        return config_parser
    try:
        config_parser.read(config_path)
    except configparser.Error as e:
        logger.error(f"Error parsing config file {config_path}: {e}")
        raise
    logger.info(f"Loaded config file {config_path}. Sections: {config_parser.sections()}")
    return config_parser


def _setting(parser: configparser.ConfigParser, env_name: str, section: str, option: str, default: Any) -> Any:
    # Environment wins over the config file, which wins over the default
    env_value = os.getenv(env_name)
    if env_value is not None and env_value != "":
        return env_value
    return parser.get(section, option, fallback=default)


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def _as_list(value: Any) -> List[str]:
    if isinstance(value, list):
        return value
    return [item.strip() for item in str(value).split(",") if item.strip()]


def load_settings(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """Loads all settings from environment variables, the config file, or defaults into a dictionary."""
    parser = load_config_file(config_path)

    # --- Application Mode ---
    app_mode_str = str(_setting(parser, "APP_MODE", "Server", "app_mode", "multi")).lower()
    single_user_mode = app_mode_str == "single"

    # --- Single-User Settings ---
    single_user_fixed_id = int(_setting(parser, "SINGLE_USER_FIXED_ID", "Auth", "single_user_fixed_id", "1"))
    single_user_api_key = _setting(parser, "API_KEY", "Auth", "single_user_api_key", DEFAULT_SINGLE_USER_API_KEY)

    # --- Multi-User Settings (JWT) ---
    jwt_secret_key = _setting(parser, "JWT_SECRET_KEY", "Auth", "jwt_secret_key", DEFAULT_JWT_SECRET)
    jwt_algorithm = "HS256"
    access_token_expire_minutes = int(
        _setting(parser, "ACCESS_TOKEN_EXPIRE_MINUTES", "Auth", "access_token_expire_minutes", "60"))

    # --- Database Settings ---
    database_path = Path(_setting(parser, "DATABASE_PATH", "Server", "database_path", "./pkm_data/pkm.sqlite"))
    max_cached_db_instances = int(
        _setting(parser, "MAX_CACHED_DB_INSTANCES", "Server", "max_cached_db_instances", "4"))

    # --- Uploads ---
    upload_dir = Path(_setting(parser, "UPLOAD_DIR", "Uploads", "upload_dir", "./pkm_data/uploads"))
    max_upload_size = int(
        _setting(parser, "MAX_UPLOAD_SIZE_BYTES", "Uploads", "max_upload_size_bytes", DEFAULT_MAX_UPLOAD_SIZE_BYTES))
    allowed_mimetypes = _as_list(
        _setting(parser, "ALLOWED_IMAGE_MIMETYPES", "Uploads", "allowed_image_mimetypes",
                 ",".join(DEFAULT_ALLOWED_IMAGE_MIMETYPES)))

    # --- Sync ---
    sync_image_scope = str(_setting(parser, "SYNC_IMAGE_SCOPE", "Sync", "image_scope", "owned")).lower()
    if sync_image_scope not in ("owned", "global"):
        logger.warning(f"Unknown SYNC_IMAGE_SCOPE '{sync_image_scope}', falling back to 'owned'.")
        sync_image_scope = "owned"

    # --- Rate limiting ---
    rate_limit_enabled = _as_bool(_setting(parser, "RATE_LIMIT_ENABLED", "Server", "rate_limit_enabled", "true"))
    sync_rate_limit = _setting(parser, "SYNC_RATE_LIMIT", "Sync", "rate_limit", "60/minute")
    auth_rate_limit = _setting(parser, "AUTH_RATE_LIMIT", "Auth", "rate_limit", "10/minute")

    # --- CORS / Logging ---
    allowed_origins = _as_list(_setting(parser, "ALLOWED_ORIGINS", "Server", "allowed_origins", ""))
    log_level = str(_setting(parser, "LOG_LEVEL", "Server", "log_level", "INFO")).upper()

    # --- Build the Settings Dictionary ---
    config_dict = {
        # General App
        "APP_MODE_STR": app_mode_str,
        "SINGLE_USER_MODE": single_user_mode,
        "LOG_LEVEL": log_level,
        "ALLOWED_ORIGINS": allowed_origins,

        # Single User
        "SINGLE_USER_FIXED_ID": single_user_fixed_id,
        "SINGLE_USER_API_KEY": single_user_api_key,

        # Multi User / Auth
        "JWT_SECRET_KEY": jwt_secret_key,
        "JWT_ALGORITHM": jwt_algorithm,
        "ACCESS_TOKEN_EXPIRE_MINUTES": access_token_expire_minutes,

        # Database
        "DATABASE_PATH": database_path,
        "MAX_CACHED_DB_INSTANCES": max_cached_db_instances,

        # Uploads
        "UPLOAD_DIR": upload_dir,
        "MAX_UPLOAD_SIZE_BYTES": max_upload_size,
        "ALLOWED_IMAGE_MIMETYPES": allowed_mimetypes,

        # Sync
        "SYNC_IMAGE_SCOPE": sync_image_scope,

        # Rate limiting
        "RATE_LIMIT_ENABLED": rate_limit_enabled,
        "SYNC_RATE_LIMIT": sync_rate_limit,
        "AUTH_RATE_LIMIT": auth_rate_limit,
    }

    # --- Warnings ---
    if config_dict["SINGLE_USER_MODE"] and config_dict["SINGLE_USER_API_KEY"] == DEFAULT_SINGLE_USER_API_KEY:
        print("!!! WARNING: Using default API_KEY for single-user mode. Set the API_KEY environment variable for security. !!!")
    if not config_dict["SINGLE_USER_MODE"] and config_dict["JWT_SECRET_KEY"] == DEFAULT_JWT_SECRET:
        print("!!! SECURITY WARNING: Using default JWT_SECRET_KEY in multi-user mode. Set a strong JWT_SECRET_KEY environment variable! !!!")

    return config_dict


# --- Global Settings Object ---
# Load the settings when the module is imported
settings = load_settings()

ALLOWED_ORIGINS = settings["ALLOWED_ORIGINS"]

#
# End of config.py
########################################################################################################################
