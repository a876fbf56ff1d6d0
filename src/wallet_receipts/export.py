"""Excel export of drafts and review data."""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd
from dateutil import tz
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from .models import DraftRecord, MetadataSnapshot
from .review import ReviewItem

logger = logging.getLogger(__name__)

HEADERS = ["Source", "Pay Time", "Amount", "Currency", "Direction", "Merchant", "Category",
           "Tag", "Platform", "Confidence", "Review Status", "Review Reason", "Raw Snippet"]
COLUMN_WIDTHS = [25, 18, 12, 9, 10, 28, 16, 14, 10, 11, 13, 40, 60]


class ExcelExporter:
    """Export drafts and review items to a single Excel sheet."""

    def __init__(self, output_path: Path, timezone=None):
        """
        Initialize Excel exporter.

        Args:
            output_path: Path for the output Excel file
            timezone: Zone used to render pay times
        """
        self.output_path = Path(output_path)
        self.timezone = timezone or tz.tzlocal()
        self.workbook = Workbook()

    def export_drafts(self,
                      drafts: List[DraftRecord],
                      review_items: List[ReviewItem],
                      snapshot: Optional[MetadataSnapshot] = None,
                      include_summary: bool = True):
        """
        Export drafts plus their review status.

        Args:
            drafts: Drafts to export
            review_items: Items needing review, matched to drafts by source name
            snapshot: Used to print category and tag names instead of ids
            include_summary: Whether to add the per-category summary on top
        """
        transactions = [self.create_transaction_dict(d, snapshot, self.timezone) for d in drafts]
        try:
            if "Sheet" in self.workbook.sheetnames:
                self.workbook.remove(self.workbook["Sheet"])

            self._create_consolidated_sheet(transactions, review_items, include_summary)

            self.output_path.parent.mkdir(parents=True, exist_ok=True)
            self.workbook.save(str(self.output_path))
            logger.info(f"Excel file exported to: {self.output_path}")
        except Exception as e:
            logger.error(f"Failed to export Excel file: {e}")
            raise

    def _create_consolidated_sheet(self, transactions: List[Dict[str, Any]],
                                   review_items: List[ReviewItem], include_summary: bool):
        ws = self.workbook.create_sheet("Receipts")
        current_row = 1

        if include_summary:
            current_row = self._add_summary_section(ws, transactions, current_row)
            current_row += 2

        # A source can be flagged more than once (e.g. low confidence and duplicate)
        review_lookup: Dict[str, List[ReviewItem]] = {}
        for item in review_items:
            review_lookup.setdefault(item.source_name, []).append(item)

        ws.cell(row=current_row, column=1, value="ALL RECEIPTS").font = Font(bold=True, size=14)
        current_row += 2

        for col, header in enumerate(HEADERS, 1):
            cell = ws.cell(row=current_row, column=col, value=header)
            cell.font = Font(bold=True)
            cell.fill = PatternFill(start_color="E6E6E6", end_color="E6E6E6", fill_type="solid")
            cell.alignment = Alignment(horizontal="center")
        current_row += 1

        # OK rows first, then rows needing review
        ordered = sorted(transactions, key=lambda t: t['source'] in review_lookup)
        for transaction in ordered:
            items = review_lookup.get(transaction['source'], [])
            values = [
                transaction['source'], transaction['pay_time'], transaction['amount'],
                transaction['currency'], transaction['direction'], transaction['merchant'],
                transaction['category'], transaction['tag'], transaction['platform'],
                transaction['confidence'],
                "REVIEW" if items else "OK",
                "; ".join(item.reason for item in items),
                items[0].raw_snippet if items else "",
            ]
            for col, value in enumerate(values, 1):
                ws.cell(row=current_row, column=col, value=value)
            current_row += 1

        for i, width in enumerate(COLUMN_WIDTHS, 1):
            ws.column_dimensions[get_column_letter(i)].width = width

        logger.info(f"Created sheet with {len(transactions)} receipts and {len(review_items)} review items")

    def _add_summary_section(self, ws, transactions: List[Dict[str, Any]], start_row: int) -> int:
        """Add totals and the per-category breakdown at the top of the sheet."""
        if not transactions:
            ws.cell(row=start_row, column=1, value="No receipts to summarize")
            return start_row + 1

        df = pd.DataFrame(transactions)

        ws.cell(row=start_row, column=1, value="RECEIPT SUMMARY").font = Font(bold=True, size=14)
        current_row = start_row + 2

        ws.cell(row=current_row, column=1, value="Total Receipts:").font = Font(bold=True)
        ws.cell(row=current_row, column=2, value=len(transactions))

        amounts = df['amount'].dropna().abs()
        ws.cell(row=current_row, column=4, value="Total Amount:").font = Font(bold=True)
        ws.cell(row=current_row, column=5, value=f"{amounts.sum():,.2f}")
        ws.cell(row=current_row, column=7, value="Average Amount:").font = Font(bold=True)
        ws.cell(row=current_row, column=8, value=f"{amounts.mean():,.2f}" if len(amounts) else "")
        current_row += 2

        ws.cell(row=current_row, column=1, value="Category Breakdown:").font = Font(bold=True)
        current_row += 1
        for col, header in enumerate(["Category", "Count", "Amount"], 1):
            ws.cell(row=current_row, column=col, value=header).font = Font(bold=True)
        current_row += 1

        summary = self.category_summary(transactions)
        for _, row in summary.iterrows():
            ws.cell(row=current_row, column=1, value=row['category'])
            ws.cell(row=current_row, column=2, value=int(row['count']))
            ws.cell(row=current_row, column=3, value=f"{row['total']:,.2f}")
            current_row += 1

        return current_row

    @staticmethod
    def category_summary(transactions: List[Dict[str, Any]]) -> pd.DataFrame:
        """Count and absolute total per category, largest total first."""
        if not transactions:
            return pd.DataFrame(columns=['category', 'count', 'total'])
        df = pd.DataFrame(transactions)
        df['category'] = df['category'].fillna('Unresolved').replace('', 'Unresolved')
        df['abs_amount'] = df['amount'].fillna(0).abs()
        summary = df.groupby('category').agg(count=('abs_amount', 'size'), total=('abs_amount', 'sum'))
        return summary.sort_values('total', ascending=False).reset_index()

    @staticmethod
    def create_transaction_dict(draft: DraftRecord,
                                snapshot: Optional[MetadataSnapshot] = None,
                                timezone=None) -> Dict[str, Any]:
        """
        Flatten a draft into one export row.

        Amounts are in major units; category and tag are names when the
        snapshot knows them, else ids.
        """
        category = snapshot.category_by_id(draft.category_id) if snapshot else None
        tag = snapshot.tag_by_id(draft.tag_id) if snapshot else None
        pay_time = datetime.fromtimestamp(draft.pay_time, timezone or tz.tzlocal())
        return {
            'source': draft.source_name,
            'pay_time': pay_time.strftime('%Y-%m-%d %H:%M'),
            'amount': draft.amount_minor / 100 if draft.amount_minor is not None else None,
            'currency': draft.parsed.currency or '',
            'direction': draft.direction.name.lower() if draft.direction else '',
            'merchant': draft.merchant or '',
            'category': category.name if category else (draft.category_id or ''),
            'tag': tag.name if tag else (draft.tag_id or ''),
            'platform': draft.parsed.platform or '',
            'confidence': draft.overall_confidence,
        }
