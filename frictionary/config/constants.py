"""Constants for the configuration module."""

# Log component names
COMPONENT_CONFIG = "config"
COMPONENT_CLI = "cli"
COMPONENT_SERVICE = "service"

# Supported URL schemes
VALID_URL_SCHEMES = ("http://", "https://")

# User-Agent template; MediaWiki asks for a contact address
USER_AGENT_TEMPLATE = "Frictionary/{version} (+{contact}) Python/{python}"
