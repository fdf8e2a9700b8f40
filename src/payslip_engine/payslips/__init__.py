"""Payslip documents: view model, rendering and storage."""

from payslip_engine.payslips.builder import PayslipBuilder, PayslipViewModel
from payslip_engine.payslips.renderer import PayslipRenderer, PdfPayslipRenderer
from payslip_engine.payslips.service import PayslipNotFoundError, PayslipService
from payslip_engine.payslips.storage import (
    DocumentStorage,
    DocumentStorageError,
    LocalDocumentStorage,
    payslip_storage_path,
)

__all__ = [
    "DocumentStorage",
    "DocumentStorageError",
    "LocalDocumentStorage",
    "PayslipBuilder",
    "PayslipNotFoundError",
    "PayslipRenderer",
    "PayslipService",
    "PayslipViewModel",
    "PdfPayslipRenderer",
    "payslip_storage_path",
]
