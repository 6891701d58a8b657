"""Constants for the Grohe Smarthome integration."""

DOMAIN = "grohe_smarthome"

# Config flow constants
CONF_REFRESH_TOKEN = "refresh_token"
CONF_STORE_PASSWORD = "store_password"
CONF_SCAN_INTERVAL = "scan_interval"
CONF_REFRESH_MODE = "refresh_mode"
CONF_TOKEN_EXCHANGE_STRATEGIES = "token_exchange_strategies"

# Entry data keys rewritten by the session itself; changes never reload
SESSION_DATA_KEYS = frozenset({CONF_REFRESH_TOKEN, "password"})

# Refresh endpoint resolution modes
REFRESH_MODE_CLAIMS = "claims"
REFRESH_MODE_STATIC = "static"

# Identity provider endpoints
IDP_BASE_URL = "https://idp2-apigw.cloud.grohe.com"
LOGIN_START_URL = f"{IDP_BASE_URL}/v3/iot/oidc/login"
TOKEN_EXCHANGE_URL = f"{IDP_BASE_URL}/v3/iot/oidc/token"
STATIC_REFRESH_URL = f"{IDP_BASE_URL}/v3/iot/oidc/refresh"
OIDC_TOKEN_PATH = "/protocol/openid-connect/token"
ONDUS_SCHEME = "ondus://"
DEFAULT_CLIENT_ID = "iot"

# Vendor device API
API_BASE_URL = "https://api.grohe-iot.com"
API_DEVICES = "/v1/devices"
API_VALVE_ACTION = "/v1/devices/{appliance_id}/actions/valve"
API_DISPENSE_ACTION = "/v1/devices/{appliance_id}/actions/dispense"

# HTTP constants
LOGIN_TIMEOUT = 25
API_TIMEOUT = 15
TOKEN_EXPIRY_BUFFER = 60  # Refresh access token 1 minute before expiry
LOG_CLIP_LENGTH = 500

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0 Safari/537.36"
    ),
    "Accept-Language": "de-DE,de;q=0.9,en;q=0.8",
}
HTML_ACCEPT = "text/html,application/xhtml+xml"

# Login flow limits
MAX_LOGIN_ATTEMPTS = 3
MAX_REDIRECTS = 20

# Token exchange strategies, in canonical order
STRATEGY_GET_CALLBACK_URL = "get_callback_url"
STRATEGY_POST_JSON_REQUEST_BODY = "post_json_request_body"
STRATEGY_POST_FORM_REQUEST_BODY = "post_form_request_body"
STRATEGY_POST_JSON_CODE_STATE = "post_json_code_state"
STRATEGY_POST_FORM_CODE_STATE = "post_form_code_state"

ALL_TOKEN_EXCHANGE_STRATEGIES = [
    STRATEGY_GET_CALLBACK_URL,
    STRATEGY_POST_JSON_REQUEST_BODY,
    STRATEGY_POST_FORM_REQUEST_BODY,
    STRATEGY_POST_JSON_CODE_STATE,
    STRATEGY_POST_FORM_CODE_STATE,
]
DEFAULT_TOKEN_EXCHANGE_STRATEGIES = [
    STRATEGY_GET_CALLBACK_URL,
    STRATEGY_POST_JSON_REQUEST_BODY,
    STRATEGY_POST_FORM_REQUEST_BODY,
]

# Update intervals
DEFAULT_SCAN_INTERVAL = 300  # seconds
MIN_SCAN_INTERVAL = 60
MAX_SCAN_INTERVAL = 3600

# Appliance types
APPLIANCE_SENSE = "SENSE"
APPLIANCE_SENSE_GUARD = "SENSE_GUARD"
APPLIANCE_BLUE_HOME = "BLUE_HOME"
APPLIANCE_BLUE_PRO = "BLUE_PRO"

APPLIANCE_MODELS = {
    APPLIANCE_SENSE: "Grohe Sense",
    APPLIANCE_SENSE_GUARD: "Grohe Sense Guard",
    APPLIANCE_BLUE_HOME: "Grohe Blue Home",
    APPLIANCE_BLUE_PRO: "Grohe Blue Professional",
}

# Services
SERVICE_DISPENSE_WATER = "dispense_water"
ATTR_APPLIANCE_ID = "appliance_id"
ATTR_WATER_TYPE = "water_type"
ATTR_AMOUNT_ML = "amount_ml"

# Repair issues
ISSUE_MFA_REQUIRED = "mfa_required"

# Device icons
ICON_FLOW = "mdi:water-pump"
ICON_PRESSURE = "mdi:gauge"
ICON_CO2 = "mdi:molecule-co2"
ICON_FILTER = "mdi:air-filter"
ICON_VALVE = "mdi:valve"
ICON_CLOUD = "mdi:cloud-check"
