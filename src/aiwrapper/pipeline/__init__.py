from .jobs import JobRepository
from .events import EventWriter
from .pdf import extract_pdf_text, extract_text_from_pdf_url
from .orchestrator import PipelineDeps, process_ai_job, extract_input_text, ensure_non_empty_text, REFUSAL_MESSAGE

__all__ = [
    "JobRepository",
    "EventWriter",
    "extract_pdf_text",
    "extract_text_from_pdf_url",
    "PipelineDeps",
    "process_ai_job",
    "extract_input_text",
    "ensure_non_empty_text",
    "REFUSAL_MESSAGE",
]
