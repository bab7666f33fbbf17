"""PDF and QR rendering for quotations and service tickets."""

from io import BytesIO
from xml.sax.saxutils import escape
from typing import Dict, Any

from reportlab.lib.pagesizes import A4, A6
from reportlab.lib import colors
from reportlab.lib.units import inch, mm
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.enums import TA_CENTER
from reportlab.graphics import renderSVG
from reportlab.graphics.barcode.qr import QrCodeWidget
from reportlab.graphics.shapes import Drawing

from servicedesk.services.document_service import CustomerQuoteDocument, PublicServiceDocument
from servicedesk.utils.formatters import money_mx, date_mx


def business_info_from_config(config) -> Dict[str, Any]:
    """Letterhead fields for PDFs, from the app config."""
    return {
        'name': config.get('BUSINESS_NAME', ''),
        'address': config.get('BUSINESS_ADDRESS', ''),
        'phone': config.get('BUSINESS_PHONE', ''),
        'email': config.get('BUSINESS_EMAIL', ''),
    }


def build_qr_drawing(value: str, size: float = 120) -> Drawing:
    """Square QR code drawing of value, size x size points."""
    widget = QrCodeWidget(value)
    x1, y1, x2, y2 = widget.getBounds()
    width, height = x2 - x1, y2 - y1
    drawing = Drawing(size, size, transform=[size / width, 0, 0, size / height, 0, 0])
    drawing.add(widget)
    return drawing


def render_qr_svg(value: str, size: float = 200) -> str:
    """QR code of value as an SVG document."""
    return renderSVG.drawToString(build_qr_drawing(value, size))


def _header_elements(title: str, business_info: Dict[str, Any], styles) -> list:
    title_style = ParagraphStyle(
        'CustomTitle',
        parent=styles['Heading1'],
        fontSize=24,
        textColor=colors.HexColor('#2C3E50'),
        spaceAfter=12,
        alignment=TA_CENTER,
        fontName='Helvetica-Bold'
    )

    header_style = ParagraphStyle(
        'CustomHeader',
        parent=styles['Normal'],
        fontSize=10,
        textColor=colors.HexColor('#7F8C8D'),
        alignment=TA_CENTER,
        spaceAfter=6
    )

    elements = [Paragraph(title, title_style)]

    if business_info.get('name'):
        elements.append(Paragraph(f"<b>{business_info['name']}</b>", header_style))

    if business_info.get('address'):
        elements.append(Paragraph(business_info['address'], header_style))

    contact_parts = []
    if business_info.get('phone'):
        contact_parts.append(f"Tel: {business_info['phone']}")
    if business_info.get('email'):
        contact_parts.append(f"Email: {business_info['email']}")

    if contact_parts:
        elements.append(Paragraph(" | ".join(contact_parts), header_style))

    return elements


def _info_table(rows) -> Table:
    table = Table(rows, colWidths=[2*inch, 3*inch])
    table.setStyle(TableStyle([
        ('ALIGN', (0, 0), (0, -1), 'RIGHT'),
        ('ALIGN', (1, 0), (1, -1), 'LEFT'),
        ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 10),
        ('TEXTCOLOR', (0, 0), (-1, -1), colors.HexColor('#34495E')),
    ]))
    return table


def _percent(value) -> str:
    # 10.00 -> "10%", 12.50 -> "12.5%"
    return f"{value:.2f}".rstrip('0').rstrip('.') + '%'


def render_quote_pdf(document: CustomerQuoteDocument, business_info: Dict[str, Any]) -> BytesIO:
    """
    Render the customer's copy of a quotation.

    Takes the customer view only, so cost and margin cannot reach the PDF.
    """
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=0.75*inch,
        leftMargin=0.75*inch,
        topMargin=0.75*inch,
        bottomMargin=0.75*inch,
        title=f"Cotización {document.folio}"
    )

    styles = getSampleStyleSheet()

    # 1. Title and Business Header
    elements = _header_elements("COTIZACIÓN", business_info, styles)
    elements.append(Spacer(1, 0.3*inch))

    # 2. Quote Metadata Table
    info_rows = [
        ['Folio:', document.folio],
        ['Fecha:', date_mx(document.issued_on)],
    ]
    if document.valid_until:
        info_rows.append(['Válida hasta:', date_mx(document.valid_until)])
    info_rows.append(['Cliente:', document.customer_name])
    if document.customer_company:
        info_rows.append(['Empresa:', document.customer_company])
    if document.customer_phone:
        info_rows.append(['Teléfono:', document.customer_phone])
    if document.customer_email:
        info_rows.append(['Correo:', document.customer_email])

    elements.append(_info_table(info_rows))
    elements.append(Spacer(1, 0.3*inch))

    # 3. Items Table
    cell_style = ParagraphStyle('Cell', parent=styles['Normal'], fontSize=9)
    table_data = [['Cant.', 'Descripción', 'Precio Unit.', 'Desc.', 'Total']]
    for line in document.lines:
        discount = _percent(line.discount_percent) if line.discount_percent else '—'
        table_data.append([
            str(line.quantity),
            Paragraph(escape(line.description or '—'), cell_style),
            f"${money_mx(line.unit_price)}",
            discount,
            f"${money_mx(line.line_total)}"
        ])

    items_table = Table(table_data, colWidths=[0.6*inch, 3.3*inch, 1.1*inch, 0.6*inch, 1.1*inch])
    items_table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#3498DB')),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('ALIGN', (0, 0), (-1, 0), 'CENTER'),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('BOTTOMPADDING', (0, 0), (-1, 0), 12),
        ('ALIGN', (0, 1), (0, -1), 'CENTER'),
        ('ALIGN', (2, 1), (2, -1), 'RIGHT'),
        ('ALIGN', (3, 1), (3, -1), 'CENTER'),
        ('ALIGN', (4, 1), (4, -1), 'RIGHT'),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.HexColor('#BDC3C7')),
        ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.HexColor('#ECF0F1')]),
    ]))

    elements.append(items_table)
    elements.append(Spacer(1, 0.2*inch))

    # 4. Totals
    totals_rows = [['Subtotal:', f"${money_mx(document.subtotal)}"]]
    if document.total_discount > 0:
        totals_rows.append(['Descuento:', f"-${money_mx(document.total_discount)}"])
    if document.total_tax > 0:
        totals_rows.append(['IVA (16%):', f"${money_mx(document.total_tax)}"])
    totals_rows.append(['TOTAL MXN:', f"${money_mx(document.grand_total)}"])

    total_table = Table(totals_rows, colWidths=[5.6*inch, 1.1*inch])
    total_table.setStyle(TableStyle([
        ('ALIGN', (0, 0), (-1, -1), 'RIGHT'),
        ('FONTSIZE', (0, 0), (-1, -2), 10),
        ('FONTNAME', (0, -1), (-1, -1), 'Helvetica-Bold'),
        ('FONTSIZE', (0, -1), (-1, -1), 14),
        ('TEXTCOLOR', (0, -1), (-1, -1), colors.HexColor('#27AE60')),
        ('BACKGROUND', (0, -1), (-1, -1), colors.HexColor('#E8F8F5')),
        ('BOX', (0, -1), (-1, -1), 2, colors.HexColor('#27AE60')),
    ]))

    elements.append(total_table)
    elements.append(Spacer(1, 0.4*inch))

    # 5. Footer
    footer_style = ParagraphStyle('Footer', parent=styles['Normal'], fontSize=9,
                                  textColor=colors.HexColor('#95A5A6'), alignment=TA_CENTER)
    footer_text = "<b>IMPORTANTE:</b><br/>Precios sujetos a cambio sin previo aviso.<br/><i>No constituye factura.</i>"
    if document.terms:
        footer_text += f"<br/><br/><b>Términos y condiciones:</b> {escape(document.terms)}"

    elements.append(Paragraph(footer_text, footer_style))

    doc.build(elements)
    buffer.seek(0)
    return buffer


def render_service_ticket_pdf(document: PublicServiceDocument, public_url: str,
                              business_info: Dict[str, Any]) -> BytesIO:
    """
    Render the small ticket handed to the customer at drop-off.

    Uses the public projection and prints a QR code of public_url so the
    customer can follow the repair online.
    """
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A6,
        rightMargin=6*mm,
        leftMargin=6*mm,
        topMargin=6*mm,
        bottomMargin=6*mm,
        title=f"Orden {document.order_folio}"
    )

    styles = getSampleStyleSheet()
    small = ParagraphStyle('Small', parent=styles['Normal'], fontSize=8, alignment=TA_CENTER)

    elements = [Paragraph(f"<b>{business_info.get('name') or ''}</b>", small)]
    if business_info.get('phone'):
        elements.append(Paragraph(f"Tel: {business_info['phone']}", small))
    elements.append(Spacer(1, 3*mm))

    rows = [
        ['Orden:', document.order_folio],
        ['Fecha:', date_mx(document.received_on)],
        ['Cliente:', document.customer_name],
        ['Servicio:', document.service_type_label],
        ['Equipo:', document.device_description or '—'],
        ['Estado:', document.status_label],
        ['Total:', f"${money_mx(document.grand_total)}"],
        ['Anticipo:', f"${money_mx(document.advance_payment)}"],
        ['Resta:', f"${money_mx(document.balance_due)}"],
    ]
    if document.delivery_on:
        rows.insert(2, ['Entrega:', date_mx(document.delivery_on)])

    table = Table(rows, colWidths=[18*mm, 64*mm])
    table.setStyle(TableStyle([
        ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 8),
        ('ALIGN', (0, 0), (0, -1), 'RIGHT'),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 1),
        ('TOPPADDING', (0, 0), (-1, -1), 1),
    ]))
    elements.append(table)
    elements.append(Spacer(1, 3*mm))

    qr_table = Table([[build_qr_drawing(public_url, size=30*mm)]], colWidths=[82*mm])
    qr_table.setStyle(TableStyle([('ALIGN', (0, 0), (-1, -1), 'CENTER')]))
    elements.append(qr_table)
    elements.append(Paragraph("Escanea para consultar el estado de tu equipo", small))

    doc.build(elements)
    buffer.seek(0)
    return buffer
