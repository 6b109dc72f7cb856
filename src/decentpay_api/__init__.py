"""DeCentPay Escrow API - transaction orchestration for the Soroban escrow contract.

This library turns escrow call intents into confirmed Soroban transactions:
build, simulate, collect authorization and envelope signatures from an
external signer, submit, and poll for finality.
"""

from .base import EscrowAPIBase
from .classifier import ClassifiedError, ErrorKind, classify, extract_error_message
from .compat import LegacyContractShim
from .config import ClientConfig, NetworkProfile, PollingConfig, get_network_profile
from .connector import NetworkConnector
from .events import Event, EventBus, EventKind
from .exceptions import (
    ContractExecutionError,
    EscrowProtocolError,
    MethodNotSupportedError,
    NetworkError,
    SigningError,
    SigningRejectedError,
    SimulationError,
    SubmissionTimeoutError,
    ValidationError,
)
from .orchestrator import EscrowOrchestrator
from .session import Session
from .signer import KeypairSigner, Signer, SignerBridge
from .types import (
    AccountHandle,
    Address,
    Application,
    Badge,
    EscrowData,
    EscrowStatus,
    InvocationResult,
    Milestone,
    MilestoneInput,
    MilestoneStatus,
    Rating,
    SimulationResult,
    Stroops,
    SubmissionReceipt,
    SubmissionStatus,
)
from .utils import from_stroops, shorten_address, to_stroops

__version__ = "0.1.0"

__all__ = [
    # Entry points
    "EscrowAPIBase",
    "EscrowOrchestrator",
    "LegacyContractShim",
    "Session",
    "NetworkConnector",
    # Signing
    "Signer",
    "SignerBridge",
    "KeypairSigner",
    # Configuration
    "ClientConfig",
    "NetworkProfile",
    "PollingConfig",
    "get_network_profile",
    # Events
    "Event",
    "EventBus",
    "EventKind",
    # Types and enums
    "AccountHandle",
    "Address",
    "Application",
    "Badge",
    "EscrowData",
    "EscrowStatus",
    "InvocationResult",
    "Milestone",
    "MilestoneInput",
    "MilestoneStatus",
    "Rating",
    "SimulationResult",
    "Stroops",
    "SubmissionReceipt",
    "SubmissionStatus",
    # Errors
    "ClassifiedError",
    "ErrorKind",
    "classify",
    "extract_error_message",
    "EscrowProtocolError",
    "ValidationError",
    "NetworkError",
    "SimulationError",
    "SigningError",
    "SigningRejectedError",
    "SubmissionTimeoutError",
    "ContractExecutionError",
    "MethodNotSupportedError",
    # Utility functions
    "to_stroops",
    "from_stroops",
    "shorten_address",
]
