import asyncio
import logging
import os
import tempfile
import time
from datetime import datetime
from typing import Optional

from fpdf import FPDF, XPos, YPos

from api.models import ProfileContext
from lib.error_handler import ErrorHandler

logger = logging.getLogger(__name__)

# Core PDF fonts only cover latin-1
_TYPOGRAPHY = str.maketrans({
    '‘': "'", '’': "'", '“': '"', '”': '"',
    '–': '-', '—': '-', '•': '-', '…': '...',
})

def _latin1(text: Optional[str]) -> str:
    return (text or "").translate(_TYPOGRAPHY).encode("latin-1", "replace").decode("latin-1")

def _or_unknown(value: Optional[str], suffix: str = '') -> str:
    return f"{value}{suffix}" if value else "Não informado"

class PlanDocumentService:
    """Renders plans to PDF and publishes them to the plans bucket."""

    def __init__(self, storage_service, timeout: float = 30.0):
        self.storage = storage_service
        self.timeout = timeout

    def _build_pdf(self, profile: ProfileContext, plan_text: str) -> bytes:
        pdf = FPDF()
        pdf.set_auto_page_break(auto=True, margin=15)
        pdf.set_margins(15, 15, 15)
        pdf.set_title(_latin1(f"Plano Personalizado - {profile.name or 'Cliente'}"))
        pdf.set_author("FitAI")
        pdf.add_page()

        pdf.set_font("Helvetica", "B", 20)
        pdf.set_text_color(31, 41, 55)
        pdf.cell(0, 12, _latin1("Plano de Treino Personalizado"), align="C", new_x=XPos.LMARGIN, new_y=YPos.NEXT)

        pdf.set_draw_color(59, 130, 246)
        pdf.set_line_width(0.8)
        pdf.line(15, pdf.get_y() + 2, 195, pdf.get_y() + 2)
        pdf.ln(8)

        pdf.set_font("Helvetica", "B", 14)
        pdf.set_text_color(55, 65, 81)
        pdf.cell(0, 8, _latin1("Dados do Cliente"), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        pdf.set_font("Helvetica", "", 11)
        pdf.set_text_color(75, 85, 99)
        for label, value in (
            ("Nome", _or_unknown(profile.name)),
            ("Idade", _or_unknown(profile.age, " anos")),
            ("Género", _or_unknown(profile.gender)),
            ("Altura", _or_unknown(profile.height, " cm")),
            ("Peso", _or_unknown(profile.weight, " kg")),
            ("Objetivo", _or_unknown(profile.goal)),
        ):
            pdf.cell(0, 6, _latin1(f"{label}: {value}"), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        pdf.ln(4)

        pdf.set_font("Helvetica", "B", 14)
        pdf.set_text_color(55, 65, 81)
        pdf.cell(0, 8, _latin1("Plano Detalhado"), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        pdf.set_font("Helvetica", "", 11)
        pdf.set_text_color(31, 41, 55)
        pdf.multi_cell(0, 6, _latin1(plan_text), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        pdf.ln(4)

        pdf.set_font("Helvetica", "I", 8)
        pdf.set_text_color(120, 120, 120)
        pdf.cell(0, 6, _latin1(f"Gerado em {datetime.now().strftime('%d/%m/%Y')}"), align="C", new_x=XPos.LMARGIN, new_y=YPos.NEXT)

        return bytes(pdf.output())

    async def render(self, profile: ProfileContext, plan_text: str) -> str:
        """Render the plan to a temporary PDF file and return its path."""
        try:
            loop = asyncio.get_running_loop()
            data = await asyncio.wait_for(
                loop.run_in_executor(None, self._build_pdf, profile, plan_text),
                timeout=self.timeout
            )
        except Exception as e:
            logger.error(f"PDF rendering failed: {str(e)}")
            raise ErrorHandler.wrap(e, 'PDF rendering')

        # Written here rather than in the worker, so a render that outlives
        # its timeout never leaves a file behind
        with tempfile.NamedTemporaryFile(suffix='.pdf', prefix='plano_', delete=False) as temp_file:
            temp_file.write(data)
            path = temp_file.name
        logger.info(f"PDF rendered to {path} ({len(data)} bytes)")
        return path

    @staticmethod
    def remote_path(phone: str) -> str:
        return f"{phone}/plano_{int(time.time() * 1000)}.pdf"

    async def upload(self, phone: str, path: str) -> str:
        """Upload a rendered PDF and return its path inside the bucket."""
        with open(path, 'rb') as pdf_file:
            data = pdf_file.read()
        remote_path = self.remote_path(phone)
        await self.storage.upload_file(remote_path, data, content_type='application/pdf')
        return remote_path

    async def public_url(self, remote_path: str) -> Optional[str]:
        return await self.storage.get_public_url(remote_path)

    @staticmethod
    def cleanup(path: Optional[str]) -> None:
        if not path:
            return
        try:
            os.remove(path)
        except OSError as e:
            logger.warning(f"Could not delete temporary PDF {path}: {str(e)}")
