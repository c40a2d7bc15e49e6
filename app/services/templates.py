"""Downloadable CSV templates.

The header row of a template is the input contract for that kind of upload;
columns come straight from the typed row schemas so templates and parsing
never drift apart. Sample rows are valid and can be uploaded as-is.
"""

from __future__ import annotations

from app.core.exceptions import ValidationError
from app.schemas.rows import (
    CommercialPolicyRow,
    HealthPolicyRow,
    LifePolicyRow,
    MotorPolicyRow,
    PolicyRow,
    ProductRow,
    ProductUpdateRow,
    UploadRow,
    policy_row_model_for,
)
from app.schemas.upload import TemplateOut, UploadKind
from app.services.csv_parser import render_csv
from app.services.validation import LINES_OF_BUSINESS

_POLICY_SAMPLE: dict[str, str] = {
    "policyNumber": "POL-2024-0001",
    "insurerName": "Acme General Insurance",
    "productName": "Secure Shield",
    "policyStartDate": "2024-04-01",
    "policyEndDate": "2025-03-31",
    "premiumAmount": "12500",
    "sumAssured": "500000",
    "policyType": "New",
    "policySource": "Branch",
    "paymentMode": "UPI",
    "createdByType": "Agent",
    "agentCode": "AG001",
    "employeeCode": "",
    "branchName": "Head Office",
    "customerName": "Asha Rao",
    "customerPhone": "9876543210",
    "customerEmail": "asha.rao@example.com",
    "status": "Active",
    "remarks": "",
}

_POLICY_DETAIL_SAMPLES: dict[type[PolicyRow], dict[str, str]] = {
    MotorPolicyRow: {
        "vehicleType": "Private Car",
        "registrationNumber": "KA01AB1234",
        "manufacturer": "Maruti",
        "model": "Swift",
        "variant": "VXI",
        "fuelType": "Petrol",
        "idv": "450000",
        "ownDamagePremium": "8200",
        "thirdPartyPremium": "3400",
        "ncbPercent": "20",
    },
    LifePolicyRow: {
        "proposerName": "Asha Rao",
        "lifeAssuredName": "Asha Rao",
        "relationship": "Self",
        "planType": "Term",
        "policyTerm": "20",
        "premiumPayingTerm": "10",
        "paymentFrequency": "Yearly",
        "nomineeName": "Ravi Rao",
        "nomineeRelation": "Spouse",
    },
    HealthPolicyRow: {
        "proposerName": "Asha Rao",
        "coverageType": "Floater",
        "sumInsured": "500000",
        "deductible": "0",
        "policyTerm": "1",
        "roomRentLimit": "Single Private Room",
    },
    CommercialPolicyRow: {
        "policyCategory": "Fire",
        "businessType": "Manufacturing",
        "riskAddress": "Plot 12, Industrial Area, Pune",
        "numberOfEmployees": "45",
        "companyName": "Rao Textiles Pvt Ltd",
        "pan": "ABCDE1234F",
        "gstin": "27ABCDE1234F1Z5",
    },
}

_PRODUCT_SAMPLE: dict[str, str] = {
    "productName": "Secure Shield",
    "insurerName": "Acme General Insurance",
    "lineOfBusiness": "Health",
    "productCode": "ACME-HLT-001",
    "uin": "ACMHLIP21001V012021",
    "planType": "Individual",
    "variant": "Gold",
    "sumInsuredMin": "300000",
    "sumInsuredMax": "2500000",
    "premiumMin": "5000",
    "premiumMax": "45000",
    "policyTerm": "1",
    "premiumPaymentTerm": "1",
    "supportedPolicyTypes": "New,Renewal,Portability",
    "vehicleTypes": "",
    "effectiveFrom": "2024-04-01",
    "effectiveTo": "2026-03-31",
    "isStandardProduct": "true",
    "isActive": "true",
    "description": "Comprehensive individual health cover",
}

_PRODUCT_UPDATE_SAMPLE: dict[str, str] = {
    "productCode": "ACME-HLT-001",
    "description": "Updated description",
    "status": "Active",
    "effectiveFrom": "2024-04-01",
    "effectiveTo": "2027-03-31",
    "minSumInsured": "300000",
    "maxSumInsured": "5000000",
    "features": "Cashless,No claim bonus",
    "eligibilityCriteria": "Age 18-65",
    "isStandardProduct": "false",
}


def _lob_or_error(line_of_business: str | None) -> str:
    if line_of_business is None:
        return "Health"
    for lob in LINES_OF_BUSINESS:
        if lob.lower() == line_of_business.strip().lower():
            return lob
    raise ValidationError(
        f"Unknown line of business '{line_of_business}'. Valid values: {', '.join(LINES_OF_BUSINESS)}"
    )


def _model_for(kind: UploadKind, line_of_business: str | None) -> type[UploadRow]:
    if kind is UploadKind.POLICY:
        return policy_row_model_for(line_of_business)
    if kind is UploadKind.PRODUCT:
        return ProductRow
    return ProductUpdateRow


def known_columns(kind: UploadKind) -> list[str]:
    """Every header a parser should recognise for *kind*."""
    if kind is not UploadKind.POLICY:
        return _model_for(kind, None).template_columns()
    columns: list[str] = []
    for model in (PolicyRow, *_POLICY_DETAIL_SAMPLES):
        columns.extend(c for c in model.template_columns() if c not in columns)
    return columns


def build_template(kind: UploadKind, line_of_business: str | None = None) -> TemplateOut:
    lob = _lob_or_error(line_of_business) if kind is UploadKind.POLICY else None
    model = _model_for(kind, lob)
    columns = model.template_columns()

    if kind is UploadKind.POLICY:
        sample = {**_POLICY_SAMPLE, "lineOfBusiness": lob}
        sample.update(_POLICY_DETAIL_SAMPLES.get(model, {}))
        if model is not MotorPolicyRow:
            sample.pop("vehicleType", None)
    elif kind is UploadKind.PRODUCT:
        sample = dict(_PRODUCT_SAMPLE)
    else:
        sample = dict(_PRODUCT_UPDATE_SAMPLE)

    return TemplateOut(
        kind=kind,
        line_of_business=lob,
        columns=columns,
        sample_rows=[{col: sample.get(col, "") for col in columns}],
    )


def render_template_csv(template: TemplateOut) -> str:
    return render_csv(
        template.columns,
        ([row.get(col, "") for col in template.columns] for row in template.sample_rows),
    )
