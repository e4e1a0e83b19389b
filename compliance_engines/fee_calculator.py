"""
Fee Calculator - Layered jurisdiction fees with exact per-item reconciliation.

Pure computation over a Transaction, its ExemptionData and an injected
RateTable.  No I/O.

Layering per item (each component rounded to cents, ROUND_HALF_UP, before
summation):
    stateRate         always present (0 when the state has no rate)
    countyRate        only when a county override exists for state:city or state
    cityRate          only when a city rate exists for state:city
    categoryModifier  always present (0 for unknown categories)

Exempt items (customer-level or item-level exemption) carry zero state and
category components and no county/city components.

Reconciliation:
    totalFees is the cent-rounded sum of item totals.  If the item totals
    drift from it by more than one cent, the residual is pushed onto the last
    item.  The invariant is re-checked and ReconciliationError is raised if
    it still does not hold.

Usage:
    from compliance_engines.fee_calculator import FeeCalculator

    calculator = FeeCalculator(rate_table)
    result = calculator.calculate_fees(transaction, exemption_data)
    result.total_fees       # Decimal("9.50")
    result.effective_rate   # Decimal("0.0950")
"""

from __future__ import annotations

import dataclasses
import time
from decimal import Decimal

from compliance_engines.rate_table import RateTable
from compliance_engines.tracer import traced_engine
from compliance_kernel.domain.dtos import (
    CalculationResult,
    ExemptionData,
    FeeComponent,
    ItemFeeCalculation,
)
from compliance_kernel.domain.transaction import LineItem, Transaction
from compliance_kernel.domain.values import (
    AMOUNT_TOLERANCE,
    ZERO,
    format_percent,
    round_money,
    round_rate,
)
from compliance_kernel.exceptions import ExemptionDataMissingError, ReconciliationError
from compliance_kernel.logging_config import get_logger

logger = get_logger("engines.fee_calculator")


class FeeCalculator:
    """
    Calculate compliance fees for a transaction.

    Contract:
        Given the same transaction, exemption data and rate table, always
        returns an equal CalculationResult.

    Guarantees:
        - |sum(item.total_fee) - total_fees| <= 0.01.
        - effective_rate = round(total_fees / total_amount, 4), or 0 when
          total_amount is 0.
        - Audit lines appear in item-processing order.

    Non-goals:
        - Does not decide exemptions; it only honours ExemptionData.
    """

    def __init__(self, rate_table: RateTable):
        self._rates = rate_table

    @traced_engine(
        "fee_calculator", "1.0",
        fingerprint_fields=("transaction", "exemption_data"),
    )
    def calculate_fees(
        self,
        transaction: Transaction,
        exemption_data: ExemptionData | None,
    ) -> CalculationResult:
        """
        Calculate per-item fees and the reconciled total.

        Raises:
            ExemptionDataMissingError: If exemption_data is None.
            ReconciliationError: If the per-item sum cannot be reconciled.
        """
        if exemption_data is None:
            raise ExemptionDataMissingError(transaction.id)

        t0 = time.monotonic()
        logger.info("fee_calculation_started", extra={
            "transaction_id": transaction.id,
            "item_count": len(transaction.items),
            "total_amount": str(transaction.total_amount),
            "customer_exempt": exemption_data.is_customer_exempt,
        })

        audit: list[str] = []
        items: list[ItemFeeCalculation] = []
        for item in transaction.items:
            if exemption_data.is_item_exempt(item.id):
                items.append(self._exempt_item(item, transaction.destination.state))
                audit.append(f"Item {item.id} ({item.category}) exempt - no fees applied")
            else:
                items.append(self._taxed_item(item, transaction, audit))

        total_fees = round_money(sum((i.total_fee for i in items), ZERO))
        items = self._reconcile(transaction.id, items, total_fees)

        if transaction.total_amount > ZERO:
            effective_rate = round_rate(total_fees / transaction.total_amount)
        else:
            effective_rate = ZERO

        result = CalculationResult(
            items=tuple(items),
            total_fees=total_fees,
            effective_rate=effective_rate,
            audit_trail=tuple(audit),
        )

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info("fee_calculation_completed", extra={
            "transaction_id": transaction.id,
            "total_fees": str(total_fees),
            "effective_rate": str(effective_rate),
            "item_count": len(items),
            "duration_ms": duration_ms,
        })
        return result

    # ------------------------------------------------------------------
    # Per-item layering
    # ------------------------------------------------------------------

    @staticmethod
    def _exempt_item(item: LineItem, state: str) -> ItemFeeCalculation:
        return ItemFeeCalculation(
            item_id=item.id,
            amount=item.amount,
            category=item.category,
            state_rate=FeeComponent(rate=ZERO, amount=ZERO, jurisdiction=state),
            category_modifier=FeeComponent(rate=ZERO, amount=ZERO, category=item.category),
            total_fee=ZERO,
        )

    def _taxed_item(
        self,
        item: LineItem,
        transaction: Transaction,
        audit: list[str],
    ) -> ItemFeeCalculation:
        state = transaction.destination.state
        city = transaction.destination.city

        state_rate = self._rates.state_rate(state)
        state_fee = FeeComponent(
            rate=state_rate,
            amount=round_money(state_rate * item.amount),
            jurisdiction=state,
        )
        if state_rate > ZERO:
            audit.append(f"Applied {state} state rate: {format_percent(state_rate)}%")

        county_fee = None
        county_rate = self._rates.county_rate(state, city)
        if county_rate is not None:
            county_name = self._rates.county_name(state, city)
            county_fee = FeeComponent(
                rate=county_rate,
                amount=round_money(county_rate * item.amount),
                jurisdiction=county_name,
            )
            if county_rate > ZERO:
                audit.append(
                    f"Applied {county_name} county rate: {format_percent(county_rate)}%"
                )

        city_fee = None
        city_rate = self._rates.city_rate(state, city)
        if city_rate is not None:
            city_fee = FeeComponent(
                rate=city_rate,
                amount=round_money(city_rate * item.amount),
                jurisdiction=city,
            )
            if city_rate > ZERO:
                audit.append(f"Applied {city} city rate: {format_percent(city_rate)}%")

        modifier = self._rates.category_modifier(item.category)
        category_fee = FeeComponent(
            rate=modifier,
            amount=round_money(modifier * item.amount),
            category=item.category,
        )
        if modifier > ZERO:
            audit.append(
                f"Applied {item.category} category modifier: {format_percent(modifier)}%"
            )

        components = [state_fee, county_fee, city_fee, category_fee]
        total_fee = round_money(
            sum((c.amount for c in components if c is not None), ZERO)
        )

        return ItemFeeCalculation(
            item_id=item.id,
            amount=item.amount,
            category=item.category,
            state_rate=state_fee,
            county_rate=county_fee,
            city_rate=city_fee,
            category_modifier=category_fee,
            total_fee=total_fee,
        )

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    @staticmethod
    def _reconcile(
        transaction_id: str,
        items: list[ItemFeeCalculation],
        total_fees: Decimal,
    ) -> list[ItemFeeCalculation]:
        item_sum = sum((i.total_fee for i in items), ZERO)
        residual = total_fees - item_sum

        if abs(residual) > AMOUNT_TOLERANCE and items:
            last = items[-1]
            items[-1] = dataclasses.replace(last, total_fee=last.total_fee + residual)
            logger.warning("fee_reconciliation_adjusted", extra={
                "transaction_id": transaction_id,
                "item_id": last.item_id,
                "residual": str(residual),
            })
            item_sum = sum((i.total_fee for i in items), ZERO)

        if abs(item_sum - total_fees) > AMOUNT_TOLERANCE:
            logger.error("fee_reconciliation_failed", extra={
                "transaction_id": transaction_id,
                "item_sum": str(item_sum),
                "total_fees": str(total_fees),
            })
            raise ReconciliationError(transaction_id, str(item_sum), str(total_fees))

        return items
