"""
AI Summary Agent

DESIGN DECISION: The model only ever sees the latest ledger entries,
already formatted. It is asked to describe them for donors, never to
compute or invent figures, and every failure falls back to a fixed
message so the dashboard always renders.

BOUNDARIES:
- CAN: Summarize recent entries in plain Indonesian
- CANNOT: Modify the ledger
- CANNOT: Raise to the caller
"""

from typing import Optional

import google.generativeai as genai
import structlog

from mosque_ledger.config import get_settings
from mosque_ledger.config.settings import GeminiSettings
from mosque_ledger.models.transaction import Transaction, TransactionType
from mosque_ledger.reports.formatting import format_currency


logger = structlog.get_logger(__name__)

MISSING_KEY_MESSAGE = "Error: API key Gemini belum diatur (GEMINI_API_KEY)."
FAILURE_MESSAGE = "Terjadi kesalahan saat membuat ringkasan otomatis."
EMPTY_MESSAGE = "Ringkasan belum tersedia."

PROMPT_TEMPLATE = """
Anda adalah asisten keuangan masjid yang transparan dan amanah.
Berdasarkan data transaksi berikut, buatlah ringkasan singkat untuk para Donatur.

Tujuan: Memberikan kepercayaan bahwa dana dikelola dengan baik.
Poin utama:
1. Ringkasan saldo saat ini.
2. Tren pemasukan/pengeluaran singkat.
3. Kalimat apresiasi singkat kepada donatur.

Data Transaksi Terakhir:
{transaction_data}

Berikan jawaban dalam Bahasa Indonesia yang sopan dan menyejukkan. Maksimal 3-4 kalimat.
Jangan gunakan salam pembuka/penutup formal yang berlebihan.
"""

_TYPE_WORDS = {
    TransactionType.INCOME: "Pemasukan",
    TransactionType.EXPENSE: "Pengeluaran",
    TransactionType.TRANSFER: "Transfer",
}


def build_prompt(transactions: list[Transaction], limit: int = 20) -> str:
    lines = [
        f"- {t.date.isoformat()}: {t.description} ({_TYPE_WORDS[t.type]}) - "
        f"{format_currency(t.amount)}"
        for t in transactions[:limit]
    ]
    return PROMPT_TEMPLATE.format(transaction_data="\n".join(lines))


class FinancialSummaryAgent:
    """
    Donor-facing summary of the latest transactions.

    The model is configured lazily so the agent can be built without a key.
    """

    def __init__(self, settings: Optional[GeminiSettings] = None):
        self._settings = settings or get_settings().gemini
        self._model = None

    @property
    def is_configured(self) -> bool:
        return bool(self._settings.api_key)

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        self._model = genai.GenerativeModel(
            model_name=self._settings.model_name,
            generation_config={
                "temperature": self._settings.temperature,
                "max_output_tokens": self._settings.max_tokens,
            }
        )

    async def generate(self, transactions: list[Transaction]) -> str:
        if not self.is_configured:
            return MISSING_KEY_MESSAGE

        prompt = build_prompt(transactions, self._settings.recent_limit)
        try:
            if self._model is None:
                self._configure_genai()
            response = await self._model.generate_content_async(prompt)
            text = (response.text or "").strip()
        except Exception as e:
            logger.warning("summary_generation_failed", error=str(e))
            return FAILURE_MESSAGE

        return text or EMPTY_MESSAGE
