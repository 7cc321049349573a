"""Run Landscape scripts against a server group and follow them to completion."""

from .landscape import LandscapeClient
from .runner import DeploymentRunner

__all__ = ["DeploymentRunner", "LandscapeClient"]
