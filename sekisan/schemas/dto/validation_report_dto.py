from typing import Any, List, Optional

from pydantic import BaseModel

from sekisan.services.quantity_validation_service import ValidationReport


def _plain(value: Any) -> Optional[str]:
    return None if value is None else str(value)


class ValidationIssueDTO(BaseModel):
    field: str
    message: str
    value: Optional[str] = None


class FieldCorrectionDTO(BaseModel):
    field: str
    before: Optional[str] = None
    after: Optional[str] = None
    message: str


class ValidationReportDTO(BaseModel):
    is_valid: bool
    errors: List[ValidationIssueDTO]
    warnings: List[ValidationIssueDTO]
    corrections: List[FieldCorrectionDTO]

    @classmethod
    def from_domain_model(cls, report: ValidationReport) -> "ValidationReportDTO":

        def convert_issue(issue):
            return ValidationIssueDTO(field=issue.field, message=issue.message, value=_plain(issue.value))

        return cls(
            is_valid=report.is_valid,
            errors=[convert_issue(i) for i in report.errors],
            warnings=[convert_issue(i) for i in report.warnings],
            corrections=[
                FieldCorrectionDTO(
                    field=c.field,
                    before=_plain(c.before),
                    after=_plain(c.after),
                    message=c.message,
                )
                for c in report.corrections
            ],
        )
