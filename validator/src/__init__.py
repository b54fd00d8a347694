"""
Autonomous Oracle Validator - Validation Agent Module

This module turns off-chain data into validated on-chain feed values:
- DataSourceAggregator: Concurrent multi-provider price aggregation
- PriceAggregator: Median calculation with variance-derived confidence
- SourceManager: Per-source failure tracking with exponential backoff
- AIAnalysisEngine: Question-driven value synthesis with API discovery
- ValidatorRegistrationManager: On-chain validator registration
- SubmissionScheduler: Validation cycles over the active feeds
- HealthReporter: Health state and HTTP health surface
- ValidatorAgent: Main orchestrator
- fetchers: Modular price provider implementations
"""

from .AIAnalysisEngine import AIAnalysisEngine, AIAnalysisResult
from .APIDiscovery import APIDiscovery, DiscoveredAPI
from .DataSourceAggregator import AggregatedPrice, DataSourceAggregator
from .Feed import Feed, FeedCategory, PriceSymbol
from .HealthReporter import HealthReporter, HealthState, HealthStatus
from .LedgerClient import LedgerClient, ValidationSubmission, ValidatorState
from .PriceAggregator import AggregationResult, PriceAggregator
from .SourceManager import DataSourceHealth, SourceManager, SourceStatus
from .SubmissionScheduler import CycleResult, SubmissionScheduler
from .ValidatorAgent import AgentConfig, ValidatorAgent
from .ValidatorRegistrationManager import RegistrationState, ValidatorRegistrationManager

__all__ = [
    "AIAnalysisEngine",
    "AIAnalysisResult",
    "APIDiscovery",
    "AgentConfig",
    "AggregatedPrice",
    "AggregationResult",
    "CycleResult",
    "DataSourceAggregator",
    "DataSourceHealth",
    "DiscoveredAPI",
    "Feed",
    "FeedCategory",
    "HealthReporter",
    "HealthState",
    "HealthStatus",
    "LedgerClient",
    "PriceAggregator",
    "PriceSymbol",
    "RegistrationState",
    "SourceManager",
    "SourceStatus",
    "SubmissionScheduler",
    "ValidationSubmission",
    "ValidatorAgent",
    "ValidatorRegistrationManager",
    "ValidatorState",
]
