"""
TDS Register (``gst_modules.settlement.tds_register``).

Responsibility
--------------
Persists ``TDSRecord``s and each vendor's running gross payout total per
fiscal year, which the TDS threshold is measured against.

Storage layout
--------------
* running total ``tds_gross:{vendor_id}:{fiscal_year}`` -- gross paise
* ``tds_records/{vendor_id}/{fiscal_year}/Q{n}/{reference}`` -- the record

Both are written by ``SettlementService`` inside its unit of work, so the
running total and the records never disagree.  The total only moves
through ``StoragePort.add_to_total``; two settlements for one vendor
running at the same time each see the other's payout.
"""

from __future__ import annotations

from gst_engines.tds import TDSRecord
from gst_kernel.storage.port import StoragePort


class TdsRegister:
    RECORDS = "tds_records"

    def __init__(self, storage: StoragePort):
        self._storage = storage

    @staticmethod
    def total_name(vendor_id: str, fiscal_year: str) -> str:
        return f"tds_gross:{vendor_id}:{fiscal_year}"

    def cumulative(self, vendor_id: str, fiscal_year: str) -> int:
        return self._storage.total(self.total_name(vendor_id, fiscal_year))

    def accumulate(self, vendor_id: str, fiscal_year: str, gross_amount: int) -> int:
        """
        Add ``gross_amount`` to the vendor's running total and return the
        total *before* it, i.e. the ``cumulative_before`` for this payout.
        """
        after = self._storage.add_to_total(self.total_name(vendor_id, fiscal_year), gross_amount)
        return after - gross_amount

    def add(self, record: TDSRecord) -> None:
        key = f"{record.vendor_id}/{record.fiscal_year}/Q{record.quarter}/{record.reference}"
        self._storage.put_if_absent(self.RECORDS, key, record.to_dict())

    def find(self, vendor_id: str, fiscal_year: str, quarter: int, reference: str) -> TDSRecord | None:
        data = self._storage.get(self.RECORDS, f"{vendor_id}/{fiscal_year}/Q{quarter}/{reference}")
        return TDSRecord.from_dict(data) if data is not None else None

    def records_for_quarter(self, vendor_id: str, fiscal_year: str, quarter: int) -> list[TDSRecord]:
        prefix = f"{vendor_id}/{fiscal_year}/Q{quarter}/"
        return [TDSRecord.from_dict(data) for _, data in self._storage.list(self.RECORDS, prefix)]

    def records_for_year(self, vendor_id: str, fiscal_year: str) -> list[TDSRecord]:
        prefix = f"{vendor_id}/{fiscal_year}/"
        return [TDSRecord.from_dict(data) for _, data in self._storage.list(self.RECORDS, prefix)]
