"""Constants and mappings for the DeCentPay escrow contract."""

from enum import Enum, IntEnum

STROOPS_PER_XLM = 10_000_000

# Placeholder account used as the simulation source for anonymous reads
ZERO_ACCOUNT = "GAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAWHF"

DEFAULT_CONTRACT_ID = "CCNFKRIZIJQWLWEMD5U6YEJ32P4IZUK6OLRHIR437FBZJ5DN6ILDFEB2"

# Native XLM Stellar Asset Contract per network
NATIVE_XLM_SAC = {
    "testnet": "CDLZFC3SYJYDZT7K67VZ75HPJVIEUVNIXF47ZG2FB2RMQQVU2HHGCYSC",
    "mainnet": "",
    "local": "",
}

MIN_ESCROW_DURATION = 3600
MAX_ESCROW_DURATION = 31_536_000
MAX_MILESTONES = 20
MAX_ARBITERS = 5
MIN_MILESTONE_DESCRIPTION_LENGTH = 10

U32_MAX = 2**32 - 1
I128_MIN = -(2**127)
I128_MAX = 2**127 - 1


class NetworkName(str, Enum):
    """Known Soroban deployments."""

    TESTNET = "testnet"
    MAINNET = "mainnet"
    LOCAL = "local"


class ContractErrorCode(IntEnum):
    """Error codes raised by the escrow contract."""

    ALREADY_INITIALIZED = 1000
    FEE_TOO_HIGH = 1001
    NOT_OWNER = 1002
    NOT_INITIALIZED = 1003
    ESCROW_NOT_FOUND = 1100
    ESCROW_NOT_ACTIVE = 1101
    INVALID_ESCROW_STATUS = 1102
    WORK_ALREADY_STARTED = 1103
    WORK_NOT_STARTED = 1104
    JOB_CREATION_PAUSED = 1200
    INVALID_DURATION = 1201
    MILESTONE_COUNT_MISMATCH = 1202
    TOO_MANY_MILESTONES = 1203
    TOO_MANY_ARBITERS = 1204
    INVALID_CONFIRMATIONS = 1205
    TOKEN_NOT_WHITELISTED = 1206
    NOT_OPEN_JOB = 1300
    JOB_CLOSED = 1301
    CANNOT_APPLY_TO_OWN_JOB = 1302
    TOO_MANY_APPLICATIONS = 1303
    ONLY_DEPOSITOR = 1304
    FREELANCER_NOT_APPLIED = 1305
    ALREADY_APPLIED = 1306
    INVALID_MILESTONE = 1400
    MILESTONE_ALREADY_SUBMITTED = 1401
    MILESTONE_NOT_SUBMITTED = 1402
    MILESTONE_ALREADY_PROCESSED = 1403
    NOTHING_TO_REFUND = 1500
    DEADLINE_NOT_PASSED = 1501
    EMERGENCY_PERIOD_NOT_REACHED = 1502
    CANNOT_REFUND = 1503
    INVALID_EXTENSION = 1504
    CANNOT_EXTEND = 1505
    ONLY_BENEFICIARY = 1600
    UNAUTHORIZED = 1601
    INVALID_AMOUNT = 1700
    INVALID_ADDRESS = 1701
    INVALID_PARAMETER = 1702
    ESCROW_NOT_COMPLETED = 1800
    RATING_ALREADY_SUBMITTED = 1801
    INVALID_RATING = 1802
    ONLY_DEPOSITOR_CAN_RATE = 1803


CONTRACT_ERROR_MESSAGES = {
    ContractErrorCode.ALREADY_INITIALIZED: "The contract is already initialized",
    ContractErrorCode.FEE_TOO_HIGH: "The platform fee exceeds the allowed maximum",
    ContractErrorCode.NOT_OWNER: "Only the contract owner can do this",
    ContractErrorCode.NOT_INITIALIZED: "The contract has not been initialized",
    ContractErrorCode.ESCROW_NOT_FOUND: "Escrow not found",
    ContractErrorCode.ESCROW_NOT_ACTIVE: "The escrow is not active",
    ContractErrorCode.INVALID_ESCROW_STATUS: "The escrow is not in a valid state for this action",
    ContractErrorCode.WORK_ALREADY_STARTED: "Work has already started on this escrow",
    ContractErrorCode.WORK_NOT_STARTED: "Work has not started on this escrow",
    ContractErrorCode.JOB_CREATION_PAUSED: "Job creation is currently paused",
    ContractErrorCode.INVALID_DURATION: "Duration must be between 1 hour and 365 days",
    ContractErrorCode.MILESTONE_COUNT_MISMATCH: "Milestone amounts and descriptions do not match",
    ContractErrorCode.TOO_MANY_MILESTONES: "Too many milestones",
    ContractErrorCode.TOO_MANY_ARBITERS: "Too many arbiters",
    ContractErrorCode.INVALID_CONFIRMATIONS: "Required confirmations exceed the number of arbiters",
    ContractErrorCode.TOKEN_NOT_WHITELISTED: "The token is not whitelisted",
    ContractErrorCode.NOT_OPEN_JOB: "This escrow is not an open job",
    ContractErrorCode.JOB_CLOSED: "This job is no longer accepting applications",
    ContractErrorCode.CANNOT_APPLY_TO_OWN_JOB: "You cannot apply to your own job",
    ContractErrorCode.TOO_MANY_APPLICATIONS: "This job has too many applications",
    ContractErrorCode.ONLY_DEPOSITOR: "Only the depositor can do this",
    ContractErrorCode.FREELANCER_NOT_APPLIED: "The freelancer has not applied to this job",
    ContractErrorCode.ALREADY_APPLIED: "You have already applied to this job",
    ContractErrorCode.INVALID_MILESTONE: "Invalid milestone",
    ContractErrorCode.MILESTONE_ALREADY_SUBMITTED: "The milestone has already been submitted",
    ContractErrorCode.MILESTONE_NOT_SUBMITTED: "The milestone has not been submitted",
    ContractErrorCode.MILESTONE_ALREADY_PROCESSED: "The milestone has already been processed",
    ContractErrorCode.NOTHING_TO_REFUND: "There is nothing to refund",
    ContractErrorCode.DEADLINE_NOT_PASSED: "The deadline has not passed yet",
    ContractErrorCode.EMERGENCY_PERIOD_NOT_REACHED: (
        "The emergency refund period has not been reached"
    ),
    ContractErrorCode.CANNOT_REFUND: "This escrow cannot be refunded",
    ContractErrorCode.INVALID_EXTENSION: "Invalid deadline extension",
    ContractErrorCode.CANNOT_EXTEND: "The deadline of this escrow cannot be extended",
    ContractErrorCode.ONLY_BENEFICIARY: "Only the beneficiary can do this",
    ContractErrorCode.UNAUTHORIZED: "You are not authorized to do this",
    ContractErrorCode.INVALID_AMOUNT: "Invalid amount",
    ContractErrorCode.INVALID_ADDRESS: "Invalid address",
    ContractErrorCode.INVALID_PARAMETER: "Invalid parameter",
    ContractErrorCode.ESCROW_NOT_COMPLETED: "The escrow is not completed",
    ContractErrorCode.RATING_ALREADY_SUBMITTED: "A rating was already submitted for this escrow",
    ContractErrorCode.INVALID_RATING: "Rating must be between 1 and 5",
    ContractErrorCode.ONLY_DEPOSITOR_CAN_RATE: "Only the depositor can rate this escrow",
}


def describe_contract_error(code: int) -> str | None:
    """Return a readable description for a contract error code.

    Args:
        code: Numeric contract error code (e.g. 1402)

    Returns:
        Description, or None when the code is not part of the contract's enum
    """
    try:
        return CONTRACT_ERROR_MESSAGES[ContractErrorCode(code)]
    except ValueError:
        return None
