from __future__ import annotations


class BridgeError(Exception):
    """Base class for every error raised by the bridge core."""


class ConfigurationError(BridgeError):
    pass


class AdmissionError(BridgeError):
    """Unauthorized source or malformed request."""


class MalformedRequestError(AdmissionError):
    pass


class RoutingError(BridgeError):
    """No matching endpoint or no normalizer for the endpoint's plugin kind."""


class UnsupportedPluginError(RoutingError):
    def __init__(self, plugin_name: str) -> None:
        super().__init__(f"Unsupported plugin name: {plugin_name}")
        self.plugin_name = plugin_name


class NormalizationError(BridgeError):
    """The payload could not be turned into a normalized alert."""


class ForwardingError(BridgeError):
    """The passive-check relay failed. Never propagated to HTTP clients."""
