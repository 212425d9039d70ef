"""
JSON schemas for configuration validation.
"""

MODULE_NAME = {"type": "string", "minLength": 1}

MODULES_SCHEMA = {
    "type": "object",
    "properties": {
        "fastly_env": MODULE_NAME,
        "fastly_secret_store": MODULE_NAME,
        "fastly_logger": MODULE_NAME,
        "fastly_cache_override": MODULE_NAME,
        "fastly_fetch": MODULE_NAME,
        "cloudflare_fetch": MODULE_NAME,
        "cloudflare_ffi": MODULE_NAME,
    },
    "additionalProperties": False,
}

SECRETS_SCHEMA = {
    "type": "object",
    "properties": {
        "action_store": {"type": "string", "minLength": 1},
        "package_store": {"type": "string", "minLength": 1},
        "package_name": {"type": ["string", "null"]},
        "function_name": {"type": ["string", "null"]},
        "package_binding": {"type": "string", "minLength": 1},
    },
    "additionalProperties": False,
}

ROUTING_SCHEMA = {
    "type": "object",
    "properties": {
        "mount_segments": {"type": "integer", "minimum": 0},
    },
    "additionalProperties": False,
}

FETCH_SCHEMA = {
    "type": "object",
    "properties": {
        "default_decompress": {"type": "boolean"},
        "timeout": {"type": ["number", "null"], "exclusiveMinimum": 0},
    },
    "additionalProperties": False,
}

LOGGING_SCHEMA = {
    "type": "object",
    "properties": {
        "level": {"type": "string", "enum": ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]},
        "format": {"type": "string", "enum": ["text", "json"]},
    },
    "additionalProperties": False,
}

CONFIG_SCHEMA = {
    "type": "object",
    "properties": {
        "modules": MODULES_SCHEMA,
        "secrets": SECRETS_SCHEMA,
        "routing": ROUTING_SCHEMA,
        "fetch": FETCH_SCHEMA,
        "logging": LOGGING_SCHEMA,
    },
    "additionalProperties": True,
}
