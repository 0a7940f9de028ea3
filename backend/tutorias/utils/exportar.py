from datetime import datetime
from io import BytesIO
from xml.sax.saxutils import escape
import pandas as pd
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.colors import HexColor, black
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle
from tutorias.utils.hojas import MIMETYPE_EXCEL


FORMATOS_EXPORTACION = ('excel', 'csv', 'pdf')


def exportar_tabla(filas, titulo, formato):
    """Devuelve (buffer, mimetype, extension) con las filas en el formato pedido.

    `filas` es una lista de dicts con las mismas claves; las claves son los
    encabezados de las columnas.
    """
    if formato == 'excel':
        df = pd.DataFrame(filas)
        output = BytesIO()
        df.to_excel(output, index=False, sheet_name=titulo[:31], engine='openpyxl')
        output.seek(0)
        return output, MIMETYPE_EXCEL, 'xlsx'

    if formato == 'csv':
        df = pd.DataFrame(filas)
        output = BytesIO()
        df.to_csv(output, index=False, sep=';')  # Usa separador punto y coma
        output.seek(0)
        return output, 'text/csv', 'csv'

    if formato == 'pdf':
        return _tabla_pdf(filas, titulo), 'application/pdf', 'pdf'

    raise ValueError(f"Formato no soportado: {formato}")


def _tabla_pdf(filas, titulo):
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer, pagesize=landscape(A4),
        rightMargin=20, leftMargin=20,
        topMargin=30, bottomMargin=30
    )

    # --- ESTILOS ---
    styles = getSampleStyleSheet()
    estilo_base = ParagraphStyle(
        'Base', parent=styles['Normal'],
        fontName='Helvetica', fontSize=8, leading=10
    )
    estilo_titulo = ParagraphStyle('Titulo', parent=estilo_base, fontName='Helvetica-Bold',
                                   fontSize=14, leading=18, alignment=TA_CENTER)
    estilo_fecha = ParagraphStyle('Fecha', parent=estilo_base, alignment=TA_CENTER,
                                  textColor=HexColor("#666666"), fontSize=7)
    estilo_header_cell = ParagraphStyle('HeaderCell', parent=estilo_base, fontName='Helvetica-Bold',
                                        alignment=TA_CENTER, textColor=HexColor("#FFFFFF"))

    elementos = [
        Paragraph(titulo.upper(), estilo_titulo),
        Paragraph(f"FECHA IMPRESIÓN: {datetime.now().strftime('%Y-%m-%d %H:%M')}", estilo_fecha),
        Spacer(1, 12),
    ]

    if not filas:
        elementos.append(Paragraph('No hay datos para mostrar', estilo_base))
    else:
        columnas = list(filas[0].keys())
        tabla_data = [[Paragraph(escape(str(c)), estilo_header_cell) for c in columnas]]
        for fila in filas:
            tabla_data.append([Paragraph(escape('' if fila.get(c) is None else str(fila.get(c))), estilo_base)
                               for c in columnas])

        ancho = doc.width / len(columnas)
        tabla = Table(tabla_data, colWidths=[ancho] * len(columnas), repeatRows=1)
        table_style = [
            ('BOX', (0, 0), (-1, -1), 1, black),
            ('INNERGRID', (0, 0), (-1, -1), 0.5, HexColor("#D3D3D3")),
            ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
            ('BACKGROUND', (0, 0), (-1, 0), HexColor("#2C3E50")),
            ('TOPPADDING', (0, 0), (-1, -1), 3),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 3),
        ]
        # Filas alternadas
        for i in range(2, len(tabla_data), 2):
            table_style.append(('BACKGROUND', (0, i), (-1, i), HexColor("#F2F2F2")))
        tabla.setStyle(TableStyle(table_style))
        elementos.append(tabla)

    doc.build(elementos)
    buffer.seek(0)
    return buffer
