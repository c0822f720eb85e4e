from vetclinic.services.accounting.ledger_service import AccountingService
from vetclinic.services.accounting.summary_engine import SummaryMemo, generate_summary
from vetclinic.services.accounting.template_service import TemplateService

__all__ = [
    "AccountingService",
    "SummaryMemo",
    "TemplateService",
    "generate_summary",
]
