"""
Engine bootstrap (``gst_modules.bootstrap``).

Responsibility
--------------
Builds every engine and service once from an ``EngineConfig`` and a
storage adapter and returns them bundled in a ``SettlementEngine``.
Nothing is a module-level singleton; callers hold the bundle.

This is the only place where ``gst_config`` types are translated into
engine and kernel inputs.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from gst_config import EngineConfig, get_active_config
from gst_engines.gst import GSTCalculator, normalize_jurisdiction
from gst_engines.rates import RateEntry, RateResolver
from gst_engines.split import PaymentSplitCalculator
from gst_engines.tds import TDSCalculator, TdsPolicy
from gst_kernel.domain.clock import Clock, SystemClock
from gst_kernel.domain.fiscal import FiscalCalendar
from gst_kernel.logging_config import get_logger
from gst_kernel.services.ledger_service import CommissionLedger
from gst_kernel.services.sequence_service import InvoiceSequenceAllocator
from gst_kernel.storage.memory import InMemoryStorage
from gst_kernel.storage.port import StoragePort
from gst_modules.invoicing.generator import InvoiceGenerator
from gst_modules.invoicing.service import InvoiceService
from gst_modules.payouts.service import PayoutDispatcher, PayoutService
from gst_modules.reporting.export import ExportSink
from gst_modules.reporting.service import ReportingService
from gst_modules.settlement.service import SettlementService
from gst_modules.settlement.tds_register import TdsRegister

logger = get_logger("modules.bootstrap")


@dataclass(frozen=True)
class SettlementEngine:
    config: EngineConfig
    storage: StoragePort
    clock: Clock
    fiscal_calendar: FiscalCalendar
    rates: RateResolver
    gst: GSTCalculator
    tds: TDSCalculator
    splitter: PaymentSplitCalculator
    allocator: InvoiceSequenceAllocator
    ledger: CommissionLedger
    invoices: InvoiceService
    generator: InvoiceGenerator
    tds_register: TdsRegister
    settlement: SettlementService
    reporting: ReportingService
    payouts: PayoutService | None = None


def build_rate_resolver(config: EngineConfig) -> RateResolver:
    return RateResolver(
        RateEntry(
            classification_code=r.classification_code,
            rate=r.rate.quantize(Decimal("0.01")),
            category=r.category,
            description=r.description,
            is_exempt=r.is_exempt,
        )
        for r in config.rates
    )


def build_jurisdiction_aliases(config: EngineConfig) -> dict[str, str]:
    """Normalized code, name and alias spellings -> two-digit code."""
    aliases: dict[str, str] = {}
    for j in config.jurisdictions:
        for spelling in (j.code, j.name, *j.aliases):
            aliases[normalize_jurisdiction(spelling)] = j.code
    return aliases


def build_engine(
    config: EngineConfig | None = None,
    storage: StoragePort | None = None,
    clock: Clock | None = None,
    dispatcher: PayoutDispatcher | None = None,
    export_sink: ExportSink | None = None,
) -> SettlementEngine:
    """
    Wire the engine.

    Defaults: the active configuration, in-memory storage, the system
    clock, and no payout dispatcher (``payouts`` is then None).
    """
    config = config or get_active_config()
    storage = storage if storage is not None else InMemoryStorage()
    clock = clock or SystemClock()

    calendar = FiscalCalendar(
        start_month=config.fiscal_year_start_month, timezone=config.timezone
    )
    rates = build_rate_resolver(config)
    gst = GSTCalculator(rates, build_jurisdiction_aliases(config))
    tds = TDSCalculator(
        TdsPolicy(
            rate_with_tax_id=config.tds.rate_with_tax_id,
            rate_without_tax_id=config.tds.rate_without_tax_id,
            threshold=config.thresholds.tds,
            section=config.tds.section,
        ),
        calendar,
    )
    splitter = PaymentSplitCalculator()
    allocator = InvoiceSequenceAllocator(
        storage,
        calendar,
        sequence_width=config.invoice_sequence_width,
        retry_attempts=config.sequence_retry_attempts,
        retry_backoff_seconds=config.sequence_retry_backoff_seconds,
    )
    ledger = CommissionLedger(storage)
    invoices = InvoiceService(storage)
    generator = InvoiceGenerator(
        allocator,
        clock=clock,
        b2c_large_threshold=config.thresholds.b2c_large,
        state_codes=config.state_codes,
    )
    tds_register = TdsRegister(storage)
    settlement = SettlementService(
        storage,
        gst=gst,
        generator=generator,
        invoices=invoices,
        ledger=ledger,
        splitter=splitter,
        tds=tds,
        tds_register=tds_register,
        default_commission_pct=config.default_commission_pct,
        clock=clock,
    )
    reporting = ReportingService(
        invoices,
        tds=tds,
        tds_register=tds_register,
        fiscal_calendar=calendar,
        cache_size=config.report_cache_size,
        sink=export_sink,
    )
    payouts = (
        PayoutService(
            storage, ledger, dispatcher, max_attempts=config.payout_max_attempts, clock=clock,
        )
        if dispatcher is not None
        else None
    )

    logger.info(
        "settlement_engine_built",
        extra={
            "config_id": config.config_id,
            "checksum": config.checksum,
            "storage": type(storage).__name__,
            "rate_count": len(rates),
        },
    )
    return SettlementEngine(
        config=config,
        storage=storage,
        clock=clock,
        fiscal_calendar=calendar,
        rates=rates,
        gst=gst,
        tds=tds,
        splitter=splitter,
        allocator=allocator,
        ledger=ledger,
        invoices=invoices,
        generator=generator,
        tds_register=tds_register,
        settlement=settlement,
        reporting=reporting,
        payouts=payouts,
    )
