"""Miner agent: supervises a local XMRig process and reports its stats to the dashboard."""

from .config import MinerConfig, MinerConfigStore
from .reporter import ContributionReporter
from .supervisor import MinerState, XMRigSupervisor

__all__ = [
    "MinerConfig",
    "MinerConfigStore",
    "ContributionReporter",
    "MinerState",
    "XMRigSupervisor",
]
