"""Grid Watch: grid-power and outage-schedule notifier for a home solar system."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("grid-watch")
except PackageNotFoundError:
    __version__ = "dev"
