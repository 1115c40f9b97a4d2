"""
Account statement PDF (local store).

Summary table (limit, balance, available credit, period totals) followed by
the ledger entries of the period, newest first.
"""

import io

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from .domain.accounts import Account
from .money import format_currency
from .time_utils import utcnow

PERIOD_TITLES = {
    "daily": "Today",
    "weekly": "Last 7 days",
    "monthly": "Last 30 days",
    "all": "All activity",
}

HEADER_COLOR = colors.HexColor('#2c3e50')


class StatementGenerator:
    """Builds the statement PDF for one account."""

    def __init__(self, currency_symbol: str = "S/"):
        self.currency_symbol = currency_symbol
        self.styles = getSampleStyleSheet()
        self.styles.add(ParagraphStyle(
            name='StatementTitle',
            parent=self.styles['Heading1'],
            fontSize=20,
            alignment=TA_CENTER,
            spaceAfter=12,
            textColor=HEADER_COLOR,
        ))
        self.styles.add(ParagraphStyle(
            name='StatementSubtitle',
            parent=self.styles['Normal'],
            fontSize=10,
            alignment=TA_CENTER,
            textColor=colors.HexColor('#7f8c8d'),
        ))

    def _money(self, amount) -> str:
        return format_currency(amount, self.currency_symbol)

    def _table(self, rows, col_widths=None, header=True) -> Table:
        table = Table(rows, colWidths=col_widths, repeatRows=1 if header else 0)
        style = [
            ('FONTSIZE', (0, 0), (-1, -1), 9),
            ('GRID', (0, 0), (-1, -1), 0.25, colors.lightgrey),
            ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
        ]
        if header:
            style += [
                ('BACKGROUND', (0, 0), (-1, 0), HEADER_COLOR),
                ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
            ]
        table.setStyle(TableStyle(style))
        return table

    def build(self, account: Account, entries, totals: dict, period: str) -> bytes:
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            rightMargin=48,
            leftMargin=48,
            topMargin=48,
            bottomMargin=48,
            title=f"Statement {account.full_name}",
        )

        story = [
            Paragraph("Account statement", self.styles['StatementTitle']),
            Paragraph(
                f"{account.full_name} &lt;{account.email or '-'}&gt; · {PERIOD_TITLES.get(period, period)} · "
                f"generated {utcnow().strftime('%Y-%m-%d %H:%M')} UTC",
                self.styles['StatementSubtitle'],
            ),
            Spacer(1, 16),
        ]

        summary = [["Credit limit", self._money(account.credit_limit)],
                   ["Current balance", self._money(account.balance)]]
        if account.credit is not None:
            summary.append(["Available credit", self._money(account.credit.available)])
        summary += [
            ["Charged in period", self._money(totals["charged"])],
            ["Paid in period", self._money(totals["paid"])],
            ["Adjustments in period", self._money(totals["adjusted"])],
        ]
        story.append(self._table(summary, col_widths=[180, 140], header=False))
        story.append(Spacer(1, 16))

        rows = [["Date", "Type", "Description", "Amount", "Balance"]]
        for entry in entries:
            rows.append([
                entry.created_at.strftime('%Y-%m-%d %H:%M') if entry.created_at else "",
                entry.kind,
                Paragraph(entry.description, self.styles['Normal']),
                self._money(entry.amount),
                self._money(entry.balance),
            ])
        if len(rows) == 1:
            story.append(Paragraph("No activity in this period.", self.styles['Normal']))
        else:
            story.append(self._table(rows, col_widths=[80, 70, 200, 70, 70]))

        doc.build(story)
        return buffer.getvalue()
