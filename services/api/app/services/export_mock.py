from __future__ import annotations

import csv
import io
from collections.abc import Sequence

from services.api.app.services.pricing import display_amounts
from services.api.app.services.store_base import PersistedQuote

TABLE_COLUMNS = (
    "id",
    "created_at",
    "item_name",
    "quantity",
    "options",
    "subtotal",
    "discount_rate",
    "tax_rate",
    "final_total",
)


class MockQuoteExporter:
    name = "mock"
    document_media_type = "text/plain; charset=utf-8"
    table_media_type = "text/csv; charset=utf-8"

    def render_document(self, quote: PersistedQuote) -> bytes:
        b = quote.breakdown
        amounts = display_amounts(b)

        lines = [
            f"Quote {quote.id}",
            f"Created: {quote.created_at.isoformat()}",
            "",
            f"{b.item_name} x {b.quantity} @ {b.base_unit_price} = {b.items_total}",
        ]
        lines.extend(f"  + {line.name}: {line.line_total}" for line in b.options)
        lines.extend(
            [
                "",
                f"Subtotal: {b.subtotal}",
                f"Discount ({b.discount_rate}): -{amounts.discount_amount}",
                f"Tax ({b.tax_rate}): +{amounts.tax_amount}",
                f"Total: {b.final_total}",
            ]
        )
        return ("\n".join(lines) + "\n").encode("utf-8")

    def render_table(self, quotes: Sequence[PersistedQuote]) -> bytes:
        buf = io.StringIO()
        writer = csv.writer(buf)
        writer.writerow(TABLE_COLUMNS)
        for quote in quotes:
            b = quote.breakdown
            writer.writerow(
                [
                    quote.id,
                    quote.created_at.isoformat(),
                    b.item_name,
                    b.quantity,
                    "; ".join(line.name for line in b.options),
                    b.subtotal,
                    str(b.discount_rate),
                    str(b.tax_rate),
                    b.final_total,
                ]
            )
        return buf.getvalue().encode("utf-8")
