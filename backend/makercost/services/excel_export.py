"""
Excel export service for quotes
Generates a multi-sheet workbook: quote summary, one sheet per product and
a materials detail sheet
"""
from io import BytesIO
from typing import Any, Dict, List, Optional

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.worksheet.worksheet import Worksheet

from makercost.schemas.pricing import CostContext, Product
from makercost.schemas.quote import Quote, QuoteProduct
from makercost.services.pricing_engine import calculate_material_cost, what_if_matrix
from makercost.utils.formatting import format_currency_whole, format_percentage
from makercost.utils.units import format_unit_display

WHAT_IF_PRICE_CHANGES = (-20, -10, 0, 10, 20)
WHAT_IF_QUANTITY_CHANGES = (-20, -10, 0, 10, 20)

# Excel sheet names are limited to 31 characters
MAX_SHEET_TITLE = 31


class QuoteExcelExporter:
    """Generate Excel quote documents"""

    def __init__(self, shop_header: Optional[Dict[str, Any]] = None, context: Optional[CostContext] = None):
        self.shop_header = shop_header or {}
        self.context = context
        self.header_fill = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
        self.section_fill = PatternFill(start_color="D3D3D3", end_color="D3D3D3", fill_type="solid")
        self.total_fill = PatternFill(start_color="E0E0E0", end_color="E0E0E0", fill_type="solid")
        self.header_font = Font(bold=True, color="FFFFFF", size=11)
        self.title_font = Font(bold=True, size=16)
        self.subtitle_font = Font(bold=True, size=12)
        self.bold_font = Font(bold=True, size=10)
        self.border = Border(
            left=Side(style='thin'),
            right=Side(style='thin'),
            top=Side(style='thin'),
            bottom=Side(style='thin')
        )

    def export(self, quote: Quote) -> bytes:
        """Build the workbook for ``quote`` and return the .xlsx bytes"""
        buffer = BytesIO()
        wb = Workbook()

        # Remove default sheet
        if 'Sheet' in wb.sheetnames:
            wb.remove(wb['Sheet'])

        self._create_summary_sheet(wb, quote)
        used_titles = {"Quote Summary", "Materials Details"}
        for index, product in enumerate(quote.products, 1):
            title = self._sheet_title(f"{index}. {product.product_name or 'Product'}", used_titles)
            used_titles.add(title)
            self._create_product_sheet(wb, product, quote.currency, title)
        self._create_materials_sheet(wb, quote)

        wb.save(buffer)
        return buffer.getvalue()

    @staticmethod
    def _sheet_title(title: str, used: set) -> str:
        for char in '[]:*?/\\':
            title = title.replace(char, " ")
        title = title[:MAX_SHEET_TITLE]
        candidate, suffix = title, 2
        while candidate in used:
            tag = f" ({suffix})"
            candidate = title[:MAX_SHEET_TITLE - len(tag)] + tag
            suffix += 1
        return candidate

    def _section(self, ws: Worksheet, row: int, title: str, last_col: str = "D") -> int:
        ws[f'A{row}'] = title
        ws[f'A{row}'].font = self.subtitle_font
        ws[f'A{row}'].fill = self.section_fill
        ws.merge_cells(f'A{row}:{last_col}{row}')
        return row + 1

    def _label(self, ws: Worksheet, row: int, label: str, value: Any) -> int:
        ws[f'A{row}'] = label
        ws[f'B{row}'] = value
        ws[f'A{row}'].font = self.bold_font
        return row + 1

    def _header_row(self, ws: Worksheet, row: int, headers: List[str]) -> int:
        for col, header in enumerate(headers, 1):
            cell = ws.cell(row=row, column=col, value=header)
            cell.fill = self.header_fill
            cell.font = self.header_font
            cell.alignment = Alignment(horizontal='center', vertical='center', wrap_text=True)
            cell.border = self.border
        return row + 1

    def _create_summary_sheet(self, wb: Workbook, quote: Quote):
        ws = wb.create_sheet("Quote Summary", 0)
        currency = quote.currency

        ws.merge_cells('A1:D1')
        title_cell = ws['A1']
        title_cell.value = self.shop_header.get("business_name") or "Quote"
        title_cell.font = self.title_font
        title_cell.alignment = Alignment(horizontal='center', vertical='center')
        row = 3

        row = self._section(ws, row, "Quote Information")
        row = self._label(ws, row, "Quote Number:", quote.quote_number)
        row = self._label(ws, row, "Date:", quote.created_at.strftime('%Y-%m-%d'))
        row = self._label(ws, row, "Project:", quote.project_name)
        row = self._label(ws, row, "Client:", quote.client_name)
        row = self._label(ws, row, "Status:", quote.status.value.title())
        if quote.delivery_date:
            row = self._label(ws, row, "Delivery Date:", quote.delivery_date.strftime('%Y-%m-%d'))
        if quote.payment_terms:
            row = self._label(ws, row, "Payment Terms:", quote.payment_terms)
        row += 1

        row = self._section(ws, row, "Products")
        row = self._header_row(ws, row, ["Product", "Quantity", "Unit Price", "Total"])
        for product in quote.products:
            ws.cell(row=row, column=1, value=product.product_name)
            ws.cell(row=row, column=2, value=product.quantity).alignment = Alignment(horizontal='right')
            ws.cell(row=row, column=3, value=format_currency_whole(product.unit_price, currency))
            ws.cell(row=row, column=4, value=format_currency_whole(product.total_price, currency))
            for col in range(1, 5):
                ws.cell(row=row, column=col).border = self.border
            row += 1
        if not quote.products:
            ws.merge_cells(f'A{row}:D{row}')
            ws.cell(row=row, column=1, value="No products").alignment = Alignment(horizontal='center')
            row += 1
        row += 1

        row = self._section(ws, row, "Totals")
        row = self._label(ws, row, "Subtotal:", format_currency_whole(quote.subtotal, currency))
        if quote.discount_amount:
            row = self._label(ws, row, "Discount:", f"-{format_currency_whole(quote.discount_amount, currency)}")
        if quote.shipping is not None:
            shipping_value = "Free" if quote.shipping.is_free_shipping else format_currency_whole(quote.shipping_amount, currency)
            row = self._label(ws, row, "Shipping:", shipping_value)
        ws[f'A{row}'] = "Total:"
        ws[f'B{row}'] = format_currency_whole(quote.total_amount, currency)
        ws[f'A{row}'].font = self.subtitle_font
        ws[f'B{row}'].font = self.subtitle_font
        ws[f'A{row}'].fill = self.total_fill
        ws[f'B{row}'].fill = self.total_fill

        footer = self.shop_header.get("footer")
        if footer:
            ws[f'A{row + 2}'] = footer

        ws.column_dimensions['A'].width = 30
        ws.column_dimensions['B'].width = 20
        ws.column_dimensions['C'].width = 18
        ws.column_dimensions['D'].width = 18

    def _create_product_sheet(self, wb: Workbook, product: QuoteProduct, currency, title: str):
        ws = wb.create_sheet(title)
        breakdown = product.breakdown

        ws.merge_cells('A1:F1')
        ws['A1'] = product.product_name
        ws['A1'].font = self.title_font
        row = 3

        row = self._section(ws, row, "Cost Breakdown", "C")
        row = self._header_row(ws, row, ["Component", "Amount", "% of Net Sales"])
        shares = breakdown.percent_of_net_sales
        cost_rows = [
            ("Materials", breakdown.material_cost, shares.get("material_cost", 0)),
            ("Machines", breakdown.machine_cost, shares.get("machine_cost", 0)),
            ("Labor", breakdown.labor_cost, shares.get("labor_cost", 0)),
            ("Overhead", breakdown.overhead_cost, shares.get("overhead_cost", 0)),
        ]
        for label, amount, share in cost_rows:
            ws.cell(row=row, column=1, value=label)
            ws.cell(row=row, column=2, value=format_currency_whole(amount, currency))
            ws.cell(row=row, column=3, value=format_percentage(share))
            row += 1
        ws.cell(row=row, column=1, value="Total Cost").font = self.bold_font
        ws.cell(row=row, column=2, value=format_currency_whole(breakdown.subtotal_cost, currency)).font = self.bold_font
        row += 2

        row = self._section(ws, row, "Profit Analysis", "C")
        row = self._label(ws, row, "Revenue:", format_currency_whole(breakdown.revenue, currency))
        row = self._label(ws, row, "VAT:", format_currency_whole(breakdown.vat_amount, currency))
        row = self._label(ws, row, "Net Revenue:", format_currency_whole(breakdown.net_revenue, currency))
        row = self._label(ws, row, "Profit:", format_currency_whole(breakdown.profit, currency))
        row = self._label(ws, row, "Margin:", format_percentage(breakdown.margin_percent))
        row = self._label(ws, row, "Profit per Unit:", format_currency_whole(breakdown.per_unit.profit, currency))
        row += 1

        row = self._section(ws, row, "What-If Analysis (profit)", "F")
        headers = ["Quantity \\ Price"] + [f"{change:+d}%" for change in WHAT_IF_PRICE_CHANGES]
        row = self._header_row(ws, row, headers)
        scenario_product = Product(
            id=product.id,
            product_name=product.product_name,
            materials=product.materials,
            machines=product.machines,
            labor=product.labor,
            overhead=product.overhead,
            sale_price=product.sale_price,
            vat_settings=product.vat_settings,
        )
        matrix = what_if_matrix(scenario_product, self.context, WHAT_IF_PRICE_CHANGES, WHAT_IF_QUANTITY_CHANGES)
        for quantity_change, cells in zip(WHAT_IF_QUANTITY_CHANGES, matrix):
            ws.cell(row=row, column=1, value=f"{quantity_change:+d}%").font = self.bold_font
            for col, cell in enumerate(cells, 2):
                ws.cell(row=row, column=col, value=format_currency_whole(cell.profit, currency))
            row += 1

        ws.column_dimensions['A'].width = 22
        for col in "BCDEF":
            ws.column_dimensions[col].width = 16

    def _create_materials_sheet(self, wb: Workbook, quote: Quote):
        ws = wb.create_sheet("Materials Details")
        row = self._header_row(ws, 1, [
            "Product", "Material", "Category", "Quantity", "Unit", "Cost per Unit", "Waste %", "Total"
        ])
        for product in quote.products:
            for material in product.materials:
                unit = format_unit_display(material.custom_unit or material.unit)
                ws.cell(row=row, column=1, value=product.product_name)
                ws.cell(row=row, column=2, value=material.name)
                ws.cell(row=row, column=3, value=material.category.value.title())
                ws.cell(row=row, column=4, value=material.quantity_used)
                ws.cell(row=row, column=5, value=unit)
                ws.cell(row=row, column=6, value=format_currency_whole(material.cost_per_unit, quote.currency))
                ws.cell(row=row, column=7, value=material.waste_percent or 0)
                ws.cell(row=row, column=8, value=format_currency_whole(calculate_material_cost(material), quote.currency))
                for col in range(1, 9):
                    ws.cell(row=row, column=col).border = self.border
                row += 1

        ws.column_dimensions['A'].width = 24
        ws.column_dimensions['B'].width = 24
        for col in "CDEFGH":
            ws.column_dimensions[col].width = 14
