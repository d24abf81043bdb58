"""
course_ledger - Course Marketplace Ledger

Token balances, course listings and enrollments for an online course
marketplace, with an exchange against the native currency and a red-envelope
lottery.

Usage:
    from course_ledger import deploy_marketplace, WEI

    d = deploy_marketplace(owner, verbose=False)
    d.token.transfer(owner, student, 1000 * WEI)

    course_id = d.marketplace.create_course(instructor, "bafy...", 100 * WEI)
    d.token.approve(student, d.marketplace.address, 100 * WEI)
    d.marketplace.purchase_course(student, course_id)

    courses, total = d.marketplace.get_active_courses(0, 10)
"""

# Core types
from .core import (
    Move,
    Course,
    CourseStats,
    ActiveCoursesPage,
    GrabInfo,
    MarketplaceConfig,
    LedgerEvent,
    EventLog,
    LogicalClock,
    OperationGuard,
    LedgerError,
    NotFound,
    Unauthorized,
    CourseInactive,
    SelfPurchase,
    AlreadyEnrolled,
    InvalidPrice,
    InvalidMetadata,
    InvalidRecipient,
    InvalidAddress,
    InvalidOwner,
    InvalidAmount,
    InsufficientBalance,
    InsufficientAllowance,
    InsufficientLiquidity,
    FeeTooHigh,
    MarketplacePaused,
    ReentrantCall,
    EnvelopeNotSet,
    EnvelopeAlreadySet,
    AlreadyGrabbed,
    EnvelopeEmpty,
    compute_fee_split,
    normalize_address,
    require_amount,
    ZERO_ADDRESS,
    MAX_UINT256,
    TOKEN_DECIMALS,
    WEI,
    EXCHANGE_RATE,
    INITIAL_SUPPLY,
    DEFAULT_PLATFORM_FEE,
    MAX_PLATFORM_FEE,
    DEFAULT_SELL_FEE,
)

# Components
from .token import TokenLedger
from .registry import CourseRegistry
from .enrollment import EnrollmentLedger
from .marketplace import CourseMarketplace
from .exchange import TokenExchange, tokens_for_eth, sell_quote
from .red_envelope import RedEnvelope, compute_grab_amount

# Wiring
from .deployment import (
    Deployment,
    deploy_marketplace,
    NATIVE_ISSUER,
    DEFAULT_MARKETPLACE_ADDRESS,
    DEFAULT_EXCHANGE_ADDRESS,
)


__all__ = [
    # Core
    'Move', 'Course', 'CourseStats', 'ActiveCoursesPage', 'GrabInfo',
    'MarketplaceConfig', 'LedgerEvent', 'EventLog', 'LogicalClock', 'OperationGuard',
    'compute_fee_split', 'normalize_address', 'require_amount',

    # Exceptions
    'LedgerError', 'NotFound', 'Unauthorized', 'CourseInactive', 'SelfPurchase',
    'AlreadyEnrolled', 'InvalidPrice', 'InvalidMetadata', 'InvalidRecipient',
    'InvalidAddress', 'InvalidOwner', 'InvalidAmount', 'InsufficientBalance',
    'InsufficientAllowance', 'InsufficientLiquidity', 'FeeTooHigh',
    'MarketplacePaused', 'ReentrantCall', 'EnvelopeNotSet', 'EnvelopeAlreadySet',
    'AlreadyGrabbed', 'EnvelopeEmpty',

    # Constants
    'ZERO_ADDRESS', 'MAX_UINT256', 'TOKEN_DECIMALS', 'WEI', 'EXCHANGE_RATE',
    'INITIAL_SUPPLY', 'DEFAULT_PLATFORM_FEE', 'MAX_PLATFORM_FEE', 'DEFAULT_SELL_FEE',

    # Components
    'TokenLedger', 'CourseRegistry', 'EnrollmentLedger', 'CourseMarketplace',
    'TokenExchange', 'tokens_for_eth', 'sell_quote',
    'RedEnvelope', 'compute_grab_amount',

    # Wiring
    'Deployment', 'deploy_marketplace', 'NATIVE_ISSUER',
    'DEFAULT_MARKETPLACE_ADDRESS', 'DEFAULT_EXCHANGE_ADDRESS',
]

__version__ = '1.0.0'
