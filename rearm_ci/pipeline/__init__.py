"""Pipeline host boundary: variables in, variables and results out."""

from .host import AzurePipelinesHost, HostError, HostProtocol, LocalHost, MockHost
from .state import BuildContext, Keys, PipelineState

__all__ = [
    "AzurePipelinesHost",
    "BuildContext",
    "HostError",
    "HostProtocol",
    "Keys",
    "LocalHost",
    "MockHost",
    "PipelineState",
]
