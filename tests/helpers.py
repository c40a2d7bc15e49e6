"""CSV builders shared by the ingestion and API tests."""


POLICY_HEADER = (
    "policyNumber,insurerName,productName,lineOfBusiness,policyStartDate,policyEndDate,"
    "premiumAmount,policyType,paymentMode,createdByType,agentCode,employeeCode,branchName,"
    "customerName,customerPhone,customerEmail,remarks"
)


def policy_line(
    number="POL-1",
    insurer="Acme General",
    product="Secure Shield",
    lob="Health",
    start="2024-04-01",
    end="2025-03-31",
    premium="12500",
    policy_type="New",
    payment="UPI",
    creator="Agent",
    agent="AG001",
    employee="",
    branch="Head Office",
    customer="Asha Rao",
    phone="9876543210",
    email="asha@example.com",
    remarks="",
) -> str:
    return ",".join(
        [number, insurer, product, lob, start, end, premium, policy_type, payment, creator,
         agent, employee, branch, customer, phone, email, remarks]
    )


def policy_csv(*lines: str) -> str:
    return "\n".join([POLICY_HEADER, *lines]) + "\n"


def policy_columns(**overrides) -> dict[str, str]:
    """Column mapping for one policy row (what the parser would produce)."""
    values = policy_line(**overrides).split(",")
    return dict(zip(POLICY_HEADER.split(","), values))
